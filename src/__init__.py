"""
Paquete principal del crawler NewsHarvest.

Contiene los módulos funcionales del sistema: contratos, extractores,
pipeline de crawling, colaboradores de almacenamiento y utilidades.
"""

from config.version import PROJECT_VERSION, PYTHON_REQUIRES_SPECIFIER

__version__ = PROJECT_VERSION
__description__ = (
    "Crawler de artículos desde feeds, blogs, sitios de noticias y cuentas sociales"
)

__package_info__ = {
    "name": "newsharvest_crawler",
    "version": __version__,
    "description": __description__,
    "python_requires": PYTHON_REQUIRES_SPECIFIER,
}
