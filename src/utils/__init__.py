"""
Utilidades del crawler NewsHarvest.
"""

from .logger import CrawlSessionLogger, get_logger, setup_logging

__all__ = [
    "CrawlSessionLogger",
    "get_logger",
    "setup_logging",
]
