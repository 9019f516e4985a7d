"""Source classification and extractor construction."""

from __future__ import annotations

from typing import Any, Dict, Optional, Type
from urllib.parse import urlparse

import httpx

from src.contracts.source import FEED_DECLARED_TYPES, DeclaredType, SourceDescriptor, SourceType

from .base_extractor import BaseExtractor, build_http_client
from .blog_extractor import BlogExtractor
from .browser import BrowserManager
from .feed_extractor import FeedExtractor, looks_like_feed_url
from .news_extractor import NewsWebsiteExtractor
from .render_extractor import HeadlessRenderExtractor
from .selectors import SelectorProfile
from .social_extractor import SocialExtractor, extract_handle

BLOG_PLATFORM_DOMAINS = ("medium.com", "substack.com", "wordpress.com", "blogger.com")
SOCIAL_DOMAINS = ("twitter.com", "x.com")

AVAILABLE_EXTRACTORS: Dict[SourceType, Type[BaseExtractor]] = {
    SourceType.SOCIAL: SocialExtractor,
    SourceType.RSS: FeedExtractor,
    SourceType.BLOG: BlogExtractor,
    SourceType.NEWS: NewsWebsiteExtractor,
    SourceType.WEBSITE: BlogExtractor,
}


def _host(url: str) -> str:
    try:
        parsed = urlparse(url if "://" in url else f"//{url}")
        return (parsed.hostname or "").lower()
    except ValueError:
        return ""


def _is_social_url(url: str) -> bool:
    host = _host(url)
    if host.startswith("nitter.") or ".nitter." in host:
        return True
    return any(host == domain or host.endswith(f".{domain}") for domain in SOCIAL_DOMAINS)


def classify(declared_type: Any, url: str) -> SourceType:
    """
    Resolve the source type. First match wins:
    social, feed, blog, news, then generic website.
    """
    declared = DeclaredType.coerce(declared_type)
    lowered = (url or "").strip().lower()

    if declared is DeclaredType.SOCIAL or _is_social_url(lowered) or extract_handle(url):
        return SourceType.SOCIAL

    if declared in FEED_DECLARED_TYPES or looks_like_feed_url(lowered):
        return SourceType.RSS

    if (
        declared is DeclaredType.BLOG
        or "/blog" in lowered
        or "blog." in _host(lowered)
        or any(domain in lowered for domain in BLOG_PLATFORM_DOMAINS)
    ):
        return SourceType.BLOG

    if declared is DeclaredType.NEWS or "/news" in lowered or "news." in _host(lowered):
        return SourceType.NEWS

    return SourceType.WEBSITE


class ExtractorFactory:
    """
    Builds extractors that share one HTTP client, one logger and one browser.

    The factory owns the shared client; call ``aclose`` when the crawl ends.
    With ``share_client=False`` every extractor opens and closes its own.
    """

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        logger_factory=None,
        registry: Any = None,
        browser_manager: Optional[BrowserManager] = None,
        render_enabled: Optional[bool] = None,
        options: Optional[Dict[str, Any]] = None,
        share_client: bool = True,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self.share_client = share_client or client is not None
        self.logger_factory = logger_factory
        self.registry = registry
        self.browser_manager = browser_manager
        self.render_enabled = render_enabled
        self.options = dict(options or {})

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_http_client()
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _shared(self) -> Dict[str, Any]:
        return {
            "client": self.client if self.share_client else None,
            "logger_factory": self.logger_factory,
            "options": self.options,
        }

    def _render(self, profile: SelectorProfile) -> HeadlessRenderExtractor:
        return HeadlessRenderExtractor(
            browser_manager=self.browser_manager, profile=profile, **self._shared()
        )

    def _static(self, extractor_class: Type[BlogExtractor]) -> BlogExtractor:
        return extractor_class(
            render_factory=lambda: self._render(extractor_class.profile),
            render_enabled=self.render_enabled,
            **self._shared(),
        )

    def _feed(self) -> FeedExtractor:
        return FeedExtractor(blog_factory=lambda: self._static(BlogExtractor), **self._shared())

    def create_for_type(self, source_type: SourceType) -> BaseExtractor:
        if source_type is SourceType.SOCIAL:
            return SocialExtractor(
                registry=self.registry, feed_extractor=self._feed(), **self._shared()
            )
        if source_type is SourceType.RSS:
            return self._feed()
        if source_type is SourceType.NEWS:
            return self._static(NewsWebsiteExtractor)
        return self._static(BlogExtractor)

    def create(self, declared_type: Any, url: str) -> BaseExtractor:
        return self.create_for_type(classify(declared_type, url))

    def create_for_source(self, source: SourceDescriptor) -> BaseExtractor:
        return self.create(source.declared_type, source.url)


def create(declared_type: Any, url: str, **kwargs: Any) -> BaseExtractor:
    """Classify the source and build a standalone extractor."""
    kwargs.setdefault("share_client", False)
    return ExtractorFactory(**kwargs).create(declared_type, url)


def get_available_extractor_types():
    """Retorna lista de tipos de extractores disponibles."""
    return [source_type.value for source_type in AVAILABLE_EXTRACTORS]


def create_extractor_by_name(extractor_type: str, **kwargs: Any) -> BaseExtractor:
    """Crea un extractor por nombre de tipo."""
    kwargs.setdefault("share_client", False)
    try:
        source_type = SourceType(extractor_type)
    except ValueError:
        raise ValueError(f"Tipo de extractor no disponible: {extractor_type}") from None
    return ExtractorFactory(**kwargs).create_for_type(source_type)


__all__ = [
    "AVAILABLE_EXTRACTORS",
    "ExtractorFactory",
    "classify",
    "create",
    "create_extractor_by_name",
    "get_available_extractor_types",
]
