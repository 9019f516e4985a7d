# config/sources.py
# Catálogo de fuentes por defecto del crawler
# ===========================================

"""
Este archivo define las fuentes que el crawler visita cuando no se le entrega
un archivo de fuentes explícito. Cada entrada es un descriptor mínimo:

- declared_type: pista del tipo de fuente (rss, blog, news, social, ...)
- url: dirección de la fuente
- name: nombre legible para reportes

El tipo declarado es solo una pista: la fábrica de extractores puede
reclasificar la fuente a partir de la URL.
"""

from __future__ import annotations

from typing import Any, Dict, List

TECH_FEEDS = {
    "36kr": {
        "name": "36Kr",
        "declared_type": "rss",
        "url": "https://36kr.com/feed",
    },
    "huxiu": {
        "name": "Huxiu",
        "declared_type": "rss",
        "url": "https://rss.huxiu.com/",
    },
    "cnn_edition": {
        "name": "CNN Edition",
        "declared_type": "rss",
        "url": "https://rss.cnn.com/rss/edition.rss",
    },
    "oreilly_radar": {
        "name": "O'Reilly Radar",
        "declared_type": "rss",
        "url": "https://feeds.feedburner.com/oreilly/radar",
    },
    "techcrunch": {
        "name": "TechCrunch",
        "declared_type": "rss",
        "url": "https://techcrunch.com/feed/",
    },
    "the_verge": {
        "name": "The Verge",
        "declared_type": "rss",
        "url": "https://www.theverge.com/rss/index.xml",
    },
}

VENDOR_BLOGS = {
    "google_cloud": {
        "name": "Google Cloud Blog",
        "declared_type": "rss",
        "url": "https://cloudblog.withgoogle.com/blog/rss/",
    },
    "aws": {
        "name": "AWS Blog",
        "declared_type": "rss",
        "url": "https://feeds.feedburner.com/AmazonWebServicesBlog",
    },
    "databricks_docs": {
        "name": "Databricks Docs",
        "declared_type": "xml",
        "url": "https://docs.databricks.com/aws/en/feed.xml",
    },
}

ALL_SOURCES: Dict[str, Dict[str, Any]] = {**TECH_FEEDS, **VENDOR_BLOGS}


def get_default_source_descriptors() -> List[Dict[str, Any]]:
    """Retorna el catálogo como lista de descriptores con su source_id."""

    return [
        {"source_id": source_id, **source_config}
        for source_id, source_config in ALL_SOURCES.items()
    ]


def validate_sources() -> List[str]:
    """Valida el catálogo y retorna la lista de problemas encontrados."""

    problems: List[str] = []
    seen_urls = set()
    for source_id, source_config in ALL_SOURCES.items():
        url = source_config.get("url", "")
        if not url.startswith(("http://", "https://")):
            problems.append(f"{source_id}: URL inválida '{url}'")
        if url in seen_urls:
            problems.append(f"{source_id}: URL duplicada '{url}'")
        seen_urls.add(url)
        if not source_config.get("declared_type"):
            problems.append(f"{source_id}: falta declared_type")
    return problems
