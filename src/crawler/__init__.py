"""
Orquestación del crawler.

Expone el pipeline que reparte fuentes entre workers y las utilidades de
espaciado por dominio.
"""

from .pipeline import CrawlPipeline, crawl
from .rate_limit_utils import article_delay, calculate_effective_delay, feed_delay

__all__ = [
    "CrawlPipeline",
    "article_delay",
    "calculate_effective_delay",
    "crawl",
    "feed_delay",
]
