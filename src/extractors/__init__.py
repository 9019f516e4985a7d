"""
Paquete de extractores del crawler.

Incluye extractores para feeds, blogs, sitios de noticias, páginas
renderizadas con navegador y cuentas sociales vía proxies RSS.
"""

from .base_extractor import BaseExtractor
from .blog_extractor import BlogExtractor
from .browser import BrowserManager, get_browser_manager, shutdown_browser_manager
from .errors import (
    ConfigurationError,
    ContentInsufficientError,
    ExtractionError,
    FetchError,
    ParseError,
    classify_error,
)
from .factory import (
    AVAILABLE_EXTRACTORS,
    ExtractorFactory,
    classify,
    create,
    create_extractor_by_name,
    get_available_extractor_types,
)
from .feed_extractor import FeedExtractor
from .news_extractor import NewsWebsiteExtractor
from .render_detector import needs_render
from .render_extractor import HeadlessRenderExtractor
from .social_extractor import SocialExtractor, normalize_handle

__all__ = [
    "AVAILABLE_EXTRACTORS",
    "BaseExtractor",
    "BlogExtractor",
    "BrowserManager",
    "ConfigurationError",
    "ContentInsufficientError",
    "ExtractionError",
    "ExtractorFactory",
    "FeedExtractor",
    "FetchError",
    "HeadlessRenderExtractor",
    "NewsWebsiteExtractor",
    "ParseError",
    "SocialExtractor",
    "classify",
    "classify_error",
    "create",
    "create_extractor_by_name",
    "get_available_extractor_types",
    "get_browser_manager",
    "needs_render",
    "normalize_handle",
    "shutdown_browser_manager",
]
