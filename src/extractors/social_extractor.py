"""Social accounts read through privacy-proxy mirrors that publish RSS."""

from __future__ import annotations

import inspect
import re
import time
from typing import Any, Dict, List, Optional

from config.settings import SOCIAL_CONFIG
from src.contracts.article import ArticleRecord
from src.contracts.source import NitterInstanceDescriptor, normalize_instance_url, rank_instances

from .base_extractor import BaseExtractor
from .errors import ConfigurationError, ExtractionError
from .feed_extractor import FeedExtractor

HANDLE_URL_PATTERNS = (
    re.compile(r"(?:^|[/.])twitter\.com/([A-Za-z0-9_]+)", re.I),
    re.compile(r"(?:^|[/.])x\.com/([A-Za-z0-9_]+)", re.I),
    re.compile(r"nitter\.(?:net|it|unixfox\.dev|privacyredirect\.com)/([A-Za-z0-9_]+)", re.I),
)
_HANDLE_RE = re.compile(r"^[A-Za-z0-9_]+$")


def extract_handle(value: Optional[str]) -> Optional[str]:
    """Bare handle from ``@name``, ``name`` or a known profile URL; None if invalid."""
    if not value:
        return None
    candidate = value.strip()
    for pattern in HANDLE_URL_PATTERNS:
        match = pattern.search(candidate)
        if match:
            candidate = match.group(1)
            break
    else:
        candidate = candidate.lstrip("@")
    return candidate if _HANDLE_RE.match(candidate) else None


def normalize_handle(value: Optional[str]) -> str:
    handle = extract_handle(value)
    if handle is None:
        raise ConfigurationError(f"Cannot resolve a social handle from {value!r}")
    return handle


def instance_feed_url(instance_url: str, handle: str) -> str:
    return f"{instance_url.rstrip('/')}/{handle}/rss"


class SocialExtractor(BaseExtractor):
    """
    Resuelve una cuenta social a un feed RSS de un proxy y lo delega al
    extractor de feeds.

    Las instancias se prueban una vez cada una y en orden; el fail-over entre
    instancias es la única estrategia de reintento.
    """

    def __init__(
        self,
        *,
        registry: Any = None,
        feed_extractor: Optional[FeedExtractor] = None,
        social_config: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.registry = registry
        self.social_config = dict(social_config or SOCIAL_CONFIG)
        self._feed_extractor = feed_extractor

    @property
    def feed_extractor(self) -> FeedExtractor:
        if self._feed_extractor is None:
            self._feed_extractor = FeedExtractor(
                client=self.share_client(), logger_factory=self.logger_factory
            )
        return self._feed_extractor

    async def aclose(self) -> None:
        if self._feed_extractor is not None:
            await self._feed_extractor.aclose()
        await super().aclose()

    async def _registry_instances(self) -> List[NitterInstanceDescriptor]:
        if self.registry is None:
            return []
        try:
            active = self.registry.get_active()
            if inspect.isawaitable(active):
                active = await active
        except Exception as exc:
            self._emit_log(
                "warning",
                "extractor.social.registry_failed",
                details={"error": str(exc) or type(exc).__name__},
            )
            return []
        descriptors = [
            item if isinstance(item, NitterInstanceDescriptor) else NitterInstanceDescriptor.model_validate(item)
            for item in active or []
        ]
        return rank_instances(descriptors)

    async def resolve_instances(self) -> List[str]:
        """Registry first, then the configured list, then the built-in defaults."""
        ranked = await self._registry_instances()
        if ranked:
            return [instance.url for instance in ranked]
        for key in ("instances", "default_instances"):
            configured = [
                normalize_instance_url(url) for url in self.social_config.get(key) or [] if url
            ]
            if configured:
                return list(dict.fromkeys(configured))
        return []

    async def extract_content(
        self, url: str, options: Optional[Dict[str, Any]] = None
    ) -> List[ArticleRecord]:
        handle = normalize_handle(url)
        instances = await self.resolve_instances()
        if not instances:
            raise ConfigurationError("No proxy instances available", url=url)

        feed_options = {**self.options, **(options or {}), "max_retries": 1}
        last_error: Optional[ExtractionError] = None
        for instance in instances:
            feed_url = instance_feed_url(instance, handle)
            started = time.perf_counter()
            try:
                articles = await self.feed_extractor.extract_from_feed(feed_url, feed_options)
            except ExtractionError as exc:
                last_error = exc
                self._emit_log(
                    "warning",
                    "extractor.social.instance_failed",
                    source_url=feed_url,
                    latency=time.perf_counter() - started,
                    details={"instance": instance, "error": str(exc), "error_type": type(exc).__name__},
                )
                continue
            if articles:
                self._emit_log(
                    "info",
                    "extractor.social.instance_succeeded",
                    source_url=feed_url,
                    latency=time.perf_counter() - started,
                    details={"instance": instance, "handle": handle, "articles": len(articles)},
                )
                return articles
            self._emit_log(
                "info",
                "extractor.social.instance_empty",
                source_url=feed_url,
                details={"instance": instance},
            )

        if last_error is not None:
            raise last_error
        raise ExtractionError(
            f"All {len(instances)} proxy instances returned no articles for @{handle}",
            url=url,
        )


__all__ = [
    "SocialExtractor",
    "extract_handle",
    "instance_feed_url",
    "normalize_handle",
]
