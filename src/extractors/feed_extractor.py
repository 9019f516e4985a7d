# src/extractors/feed_extractor.py
# Extractor de feeds RSS/Atom con reparación de XML
# ==================================================

"""
Extractor de feeds de sindicación.

Una sola descarga alimenta tanto a feedparser como a la escalera de
reparación. El flujo por feed es:

1. Parseo estándar del payload crudo.
2. Si falla o no hay ítems: ``preprocess`` (encoding, BOM, basura inicial,
   ``&`` sueltos, declaración XML) y nuevo parseo; si sigue sin ítems se
   buscan entradas Atom a mano.
3. Pasada agresiva sin caracteres de control, luego otra solo ASCII.
4. Los errores de red se reintentan con backoff exponencial en el bucle
   externo; los de parseo agotan la escalera y fallan el feed.

Cada ítem se filtra por la ventana de retención, se sanitiza y, si el
contenido es corto, se completa descargando el artículo original.
"""

from __future__ import annotations

import asyncio
import random
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlparse

import feedparser
from bs4 import BeautifulSoup, Tag

from config.settings import FEED_CONFIG, RATE_LIMITING_CONFIG
from src.contracts.article import UNTITLED_MARKER, ArticleRecord, build_article_record
from src.utils.datetime_utils import months_before, parse_date_or_none, utc_now
from src.utils.text_cleaner import (
    html_to_plain_text,
    looks_like_html,
    normalize_text,
    plain_text_length,
    summarize,
    truncate_text,
)

from . import toolkit
from .base_extractor import BaseExtractor
from .blog_extractor import BlogExtractor
from .errors import ExtractionError, ParseError
from .feed_repair import FeedParseState

FEED_PATH_MARKERS = ("/rss", "/feed", "/atom")
FEED_EXTENSIONS = (".xml", ".rss", ".atom")

_ATOM_SHAPE_RE = re.compile(r"<(?:[\w-]+:)?(?:feed|entry)\b", re.I)
_IMG_SRC_RE = re.compile(r"<img[^>]+src\s*=\s*[\"']([^\"']+)[\"']", re.I)


def looks_like_feed_url(url: str) -> bool:
    """Feed conventions in the URL path: ``/rss``, ``/feed``, ``/atom`` or a feed extension."""
    path = url.lower()
    if "://" in url:
        try:
            path = urlparse(url).path.lower()
        except ValueError:
            pass
    return any(marker in path for marker in FEED_PATH_MARKERS) or path.endswith(FEED_EXTENSIONS)


@dataclass
class FeedEntry:
    """Normalized view of one feed item, whichever parser produced it."""

    title: str
    url: str
    published: Optional[datetime] = None
    content: str = ""
    snippet: str = ""
    description: str = ""
    image_url: Optional[str] = None


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def _first_image_in(markup: str, base_url: str) -> Optional[str]:
    match = _IMG_SRC_RE.search(markup or "")
    return toolkit.resolve_url(base_url, match.group(1)) if match else None


def _entry_image(entry: Mapping[str, Any], url: str) -> Optional[str]:
    for enclosure in entry.get("enclosures") or []:
        if str(enclosure.get("type") or "").startswith("image/"):
            resolved = toolkit.resolve_url(url, enclosure.get("href") or enclosure.get("url"))
            if resolved:
                return resolved
    for key in ("media_content", "media_thumbnail"):
        for media in entry.get(key) or []:
            resolved = toolkit.resolve_url(url, media.get("url"))
            if resolved:
                return resolved
    for markup in (_entry_content(entry), entry.get("summary") or ""):
        image = _first_image_in(markup, url)
        if image:
            return image
    return None


def _entry_content(entry: Mapping[str, Any]) -> str:
    for block in entry.get("content") or []:
        value = block.get("value") if isinstance(block, Mapping) else None
        if value and value.strip():
            return value
    return ""


def entry_from_feedparser(entry: Mapping[str, Any]) -> Optional[FeedEntry]:
    url = (entry.get("link") or entry.get("id") or entry.get("guid") or "").strip()
    if not url:
        return None
    published = None
    for key in ("published_parsed", "updated_parsed"):
        if entry.get(key):
            published = parse_date_or_none(entry[key])
            if published:
                break
    if published is None:
        published = parse_date_or_none(entry.get("published") or entry.get("updated"))

    content = _entry_content(entry)
    description = entry.get("summary") or entry.get("description") or ""
    return FeedEntry(
        title=normalize_text(entry.get("title") or ""),
        url=url,
        published=published,
        content=content,
        snippet=html_to_plain_text(content or description),
        description=description,
        image_url=_entry_image(entry, url),
    )


def _child_text(parent: Tag, *names: str) -> str:
    for name in names:
        child = parent.find(name)
        if child is not None:
            text = child.get_text()
            if text and text.strip():
                return text.strip()
    return ""


def extract_atom_entries(text: str) -> List[FeedEntry]:
    """
    Rescata entradas de documentos con forma Atom que feedparser no reconoce.

    Lee directamente ``title``, ``link/@href``, ``id``, ``published``/``updated``
    y ``summary``/``content`` de cada ``<entry>``.
    """
    if not _ATOM_SHAPE_RE.search(text or ""):
        return []
    soup = BeautifulSoup(text, "xml")
    entries: List[FeedEntry] = []
    for node in soup.find_all("entry"):
        link = node.find("link", attrs={"rel": "alternate"}) or node.find("link", href=True)
        url = ""
        if link is not None:
            url = (link.get("href") or link.get_text() or "").strip()
        url = url or _child_text(node, "id")
        if not url:
            continue
        content = _child_text(node, "content")
        description = _child_text(node, "summary")
        entries.append(
            FeedEntry(
                title=normalize_text(_child_text(node, "title")),
                url=url,
                published=parse_date_or_none(_child_text(node, "published", "updated")),
                content=content,
                snippet=html_to_plain_text(content or description),
                description=description,
                image_url=_first_image_in(content or description, url),
            )
        )
    return entries


class FeedExtractor(BaseExtractor):
    """Extractor de feeds RSS/Atom/RDF con escalera de reparación."""

    def __init__(
        self,
        *,
        blog_extractor: Optional[BlogExtractor] = None,
        blog_factory: Optional[Callable[[], BlogExtractor]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        now: Callable[[], datetime] = utc_now,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._blog_extractor = blog_extractor
        self._blog_factory = blog_factory
        self._sleep = sleep
        self._now = now
        self.feed_config = dict(FEED_CONFIG)

    @property
    def blog_extractor(self) -> BlogExtractor:
        """Static extractor used to back-fill thin items, built on first use."""
        if self._blog_extractor is None:
            if self._blog_factory is not None:
                self._blog_extractor = self._blog_factory()
            else:
                self._blog_extractor = BlogExtractor(
                    client=self.share_client(), logger_factory=self.logger_factory
                )
        return self._blog_extractor

    async def aclose(self) -> None:
        if self._blog_extractor is not None:
            await self._blog_extractor.aclose()
        await super().aclose()

    # Punto de entrada genérico
    # =========================

    async def extract_content(
        self, url: str, options: Optional[Dict[str, Any]] = None
    ) -> Optional[ArticleRecord]:
        """First article of a feed URL; any other URL goes to the blog extractor."""
        if looks_like_feed_url(url):
            articles = await self.extract_from_feed(url, options)
            return articles[0] if articles else None
        return await self.blog_extractor.extract_content(url, options)

    # Bucle externo de reintentos
    # ===========================

    def backoff_delay(self, attempt: int) -> float:
        base = RATE_LIMITING_CONFIG["backoff_base"]
        max_delay = RATE_LIMITING_CONFIG["backoff_max"]
        jitter = random.uniform(0, RATE_LIMITING_CONFIG["jitter_max"])
        return min(max_delay, base * (2**attempt) + jitter)

    async def extract_from_feed(
        self,
        feed_url: str,
        options: Optional[Dict[str, Any]] = None,
        *,
        max_retries: Optional[int] = None,
    ) -> List[ArticleRecord]:
        opts = {**self.options, **(options or {})}
        retries = max_retries
        if retries is None:
            retries = opts.get("max_retries")
        if retries is None:
            retries = self.feed_config["max_retries"]
        retries = max(1, int(retries))
        started = time.perf_counter()

        entries: List[FeedEntry] = []
        for attempt in range(retries):
            try:
                entries = await self._fetch_entries(feed_url, opts.get("timeout"))
                break
            except ExtractionError as exc:
                if not exc.retryable or attempt + 1 >= retries:
                    self._emit_log(
                        "error",
                        "extractor.feed.failed",
                        source_url=feed_url,
                        latency=time.perf_counter() - started,
                        details={
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                            "attempts": attempt + 1,
                        },
                    )
                    raise
                delay = self.backoff_delay(attempt)
                self._emit_log(
                    "warning",
                    "extractor.fetch.retry",
                    source_url=feed_url,
                    details={"attempt": attempt + 1, "delay": round(delay, 3), "error": str(exc)},
                )
                await self._sleep(delay)

        articles = await self._map_entries(feed_url, entries)
        self._emit_log(
            "info",
            "extractor.feed.completed",
            source_url=feed_url,
            latency=time.perf_counter() - started,
            details={"entries": len(entries), "articles": len(articles)},
        )
        return articles

    # Parseo y escalera de reparación
    # ===============================

    @staticmethod
    def _parse(payload: bytes, headers: Optional[Dict[str, str]] = None) -> Tuple[List[FeedEntry], Any]:
        parsed = feedparser.parse(payload, response_headers=headers or {})
        entries = [entry for entry in map(entry_from_feedparser, parsed.entries) if entry]
        return entries, parsed

    @staticmethod
    def _is_empty_feed(parsed: Any) -> bool:
        return not parsed.get("bozo") and bool(parsed.get("version")) and not parsed.entries

    async def _fetch_entries(self, feed_url: str, timeout: Optional[float] = None) -> List[FeedEntry]:
        raw, headers = await self.fetch_bytes(feed_url, timeout=timeout)
        content_type = _header(headers, "content-type")
        if content_type and "html" in content_type.lower() and "xml" not in content_type.lower():
            self._emit_log(
                "warning",
                "extractor.feed.suspicious_content_type",
                source_url=feed_url,
                details={"content_type": content_type},
            )

        state = FeedParseState(raw=raw, content_type=content_type)
        entries, parsed = self._parse(raw, {"content-type": content_type} if content_type else None)
        if entries:
            return entries
        recognized_empty = self._is_empty_feed(parsed)
        state.last_error = parsed.get("bozo_exception")

        while not state.exhausted:
            text = state.escalate()
            self._emit_log(
                "info",
                "extractor.feed.repair_applied",
                source_url=feed_url,
                details={"repair_level": state.repair_level, "encoding": state.encoding},
            )
            # Repaired text is UTF-8 now; the original charset header no longer applies
            entries, parsed = self._parse(text.encode("utf-8"))
            if entries:
                return entries
            recognized_empty = recognized_empty or self._is_empty_feed(parsed)
            state.last_error = parsed.get("bozo_exception") or state.last_error

            entries = extract_atom_entries(text)
            if entries:
                self._emit_log(
                    "info",
                    "extractor.feed.atom_recovered",
                    source_url=feed_url,
                    details={"repair_level": state.repair_level, "entries": len(entries)},
                )
                return entries

        if recognized_empty:
            self._emit_log("info", "extractor.feed.empty", source_url=feed_url)
            return []
        raise ParseError(
            f"Feed unreadable after {state.repair_level} repair passes: "
            f"{state.last_error or 'no entries found'}",
            url=feed_url,
        )

    # Mapeo de ítems
    # ==============

    async def _map_entries(self, feed_url: str, entries: List[FeedEntry]) -> List[ArticleRecord]:
        now = self._now()
        cutoff = months_before(now, self.feed_config["retention_months"])
        articles: List[ArticleRecord] = []
        skipped_old = 0
        backfills = 0

        for entry in entries:
            publish_date = entry.published or now
            if publish_date < cutoff:
                skipped_old += 1
                continue
            try:
                content = self.select_content(entry)
                if plain_text_length(content) < self.feed_config["backfill_threshold_chars"]:
                    if backfills:
                        await self._sleep(
                            random.uniform(
                                RATE_LIMITING_CONFIG["article_delay_min_seconds"],
                                RATE_LIMITING_CONFIG["article_delay_max_seconds"],
                            )
                        )
                    backfills += 1
                    content = await self._backfill(entry.url, content)
                content = truncate_text(content, self.feed_config["content_max_chars"])
                record = build_article_record(
                    title=entry.title or UNTITLED_MARKER,
                    content=content,
                    url=entry.url,
                    summary=self.build_summary(entry, content),
                    image_url=entry.image_url,
                    publish_date=publish_date,
                )
            except Exception as exc:
                self._emit_log(
                    "error",
                    "extractor.feed.item_failed",
                    source_url=entry.url,
                    details={"feed_url": feed_url, "error": str(exc)},
                )
                continue
            if self._accept_record(entry.url, record):
                articles.append(record)

        if skipped_old:
            self._emit_log(
                "debug",
                "extractor.feed.items_expired",
                source_url=feed_url,
                details={"skipped": skipped_old, "cutoff": cutoff.isoformat()},
            )
        return articles

    @staticmethod
    def select_content(entry: FeedEntry) -> str:
        """Full content, then snippet, then description; HTML is sanitized."""
        for candidate in (entry.content, entry.snippet, entry.description):
            if candidate and candidate.strip():
                if looks_like_html(candidate):
                    return toolkit.sanitize_html(candidate, entry.url)
                return candidate.strip()
        return ""

    def build_summary(self, entry: FeedEntry, content: str) -> str:
        candidates = [
            entry.snippet,
            html_to_plain_text(entry.description),
            html_to_plain_text(content),
        ]
        minimum = self.feed_config["summary_min_chars"]
        chosen = next((text for text in candidates if len(text) >= minimum), None)
        if chosen is None:
            chosen = next((text for text in candidates if text), "")
        return summarize(chosen, self.feed_config["summary_max_chars"])

    async def _backfill(self, article_url: str, content: str) -> str:
        """Fetch the article page and keep whichever body has more text."""
        try:
            record = await self.blog_extractor.extract_content(article_url)
        except Exception as exc:
            self._emit_log(
                "warning",
                "extractor.feed.backfill_failed",
                source_url=article_url,
                details={"error": str(exc) or type(exc).__name__},
            )
            return content
        if record is not None and plain_text_length(record.content) > plain_text_length(content):
            self._emit_log(
                "debug",
                "extractor.feed.backfilled",
                source_url=article_url,
                details={"feed_chars": len(content), "article_chars": len(record.content)},
            )
            return record.content
        return content


__all__ = [
    "FeedEntry",
    "FeedExtractor",
    "entry_from_feedparser",
    "extract_atom_entries",
    "looks_like_feed_url",
]
