"""
Paquete de storage del crawler.

Define las interfaces de persistencia y del registro de proxies que el
crawler consume, junto con implementaciones en memoria.
"""

from .collaborators import (
    ArticleStore,
    MemoryArticleStore,
    ProxyInstanceRegistry,
    StaticProxyRegistry,
    resolve,
)

__all__ = [
    "ArticleStore",
    "MemoryArticleStore",
    "ProxyInstanceRegistry",
    "StaticProxyRegistry",
    "resolve",
]
