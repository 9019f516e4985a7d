# src/extractors/blog_extractor.py
# Extractor estático para blogs y sitios genéricos
# ================================================

"""
Extractor de artículos de blog a partir de HTML estático.

Protocolo por URL:
1. Descarga el HTML con cabeceras de navegador.
2. Si la página necesita JavaScript, delega en el extractor headless y
   retorna su resultado; si el navegador falla, sigue con el HTML estático.
3. Aplica la cascada de selectores del toolkit.
4. Si el texto queda bajo el umbral, reintenta sobre ``<body>`` con una lista
   de exclusión más amplia y acepta ese resultado solo si trae más texto.
5. Descarta el artículo si título o contenido no alcanzan los mínimos.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from config.settings import EXTRACTION_CONFIG, RENDER_CONFIG
from src.contracts.article import ArticleRecord, build_article_record
from src.contracts.extraction import ExtractionOutcome, ExtractionStrategy
from src.utils.text_cleaner import html_to_plain_text, sanitize_whitespace, truncate_text

from . import toolkit
from .base_extractor import BaseExtractor
from .errors import ExtractionError, FetchError
from .render_detector import needs_render
from .render_extractor import HeadlessRenderExtractor
from .selectors import BLOG_PROFILE, SelectorProfile


class BlogExtractor(BaseExtractor):
    """Static extraction for blogs; also the strategy for generic websites."""

    profile: SelectorProfile = BLOG_PROFILE
    max_links_setting = "blog_max_links"

    def __init__(
        self,
        *,
        render_extractor: Optional[HeadlessRenderExtractor] = None,
        render_factory: Optional[Callable[[], HeadlessRenderExtractor]] = None,
        render_enabled: Optional[bool] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._render_extractor = render_extractor
        self._render_factory = render_factory
        self.render_enabled = (
            RENDER_CONFIG["enabled"] if render_enabled is None else render_enabled
        )
        self.body_fallback_threshold = EXTRACTION_CONFIG["body_fallback_threshold_chars"]

    @property
    def render_extractor(self) -> HeadlessRenderExtractor:
        """Headless extractor, built on first use."""
        if self._render_extractor is None:
            if self._render_factory is not None:
                self._render_extractor = self._render_factory()
            else:
                self._render_extractor = HeadlessRenderExtractor(
                    profile=self.profile, logger_factory=self.logger_factory
                )
        return self._render_extractor

    async def extract_content(
        self, url: str, options: Optional[Dict[str, Any]] = None
    ) -> Optional[ArticleRecord]:
        if not url:
            raise ExtractionError("URL must not be empty")

        started = time.perf_counter()
        try:
            html = await self.fetch_html(url, options)
        except FetchError as exc:
            self._record_attempt(
                url, ExtractionStrategy.STATIC_HTML, ExtractionOutcome.FETCH_ERROR, started, exc
            )
            raise

        if self.render_enabled and needs_render(url, html, profile=self.profile):
            self._emit_log("info", "extractor.render.required", source_url=url)
            try:
                return await self.render_extractor.extract_content(url, options)
            except Exception as exc:
                self._emit_log(
                    "warning",
                    "extractor.render.degraded",
                    source_url=url,
                    details={"error": str(exc) or type(exc).__name__},
                )

        return self.extract_from_html(url, html, started=started)

    def extract_from_html(
        self, url: str, html: str, *, started: Optional[float] = None
    ) -> Optional[ArticleRecord]:
        """Run the static cascade over already fetched HTML."""
        started = started if started is not None else time.perf_counter()
        soup = toolkit.parse_html(html)
        title = toolkit.extract_title(soup, url, self.profile.title)

        extraction = toolkit.extract_content(soup, url, self.profile)
        content, text_length = extraction.content, extraction.text_length
        if text_length < self.body_fallback_threshold:
            wide_content, wide_length = self._wide_body_content(soup, url)
            if wide_length > text_length:
                content, text_length = wide_content, wide_length

        record = build_article_record(
            title=title,
            content=content,
            url=url,
            image_url=toolkit.extract_image(soup, url),
            publish_date=toolkit.extract_publish_date(soup),
        )
        self._record_attempt(
            url,
            ExtractionStrategy.STATIC_HTML,
            ExtractionOutcome.SUCCESS if record else ExtractionOutcome.CONTENT_TOO_THIN,
            started,
        )
        return self._accept_record(url, record)

    def _wide_body_content(self, soup: BeautifulSoup, url: str) -> Tuple[str, int]:
        """Second pass over ``<body>`` that also strips layout widgets."""
        body = soup.body or soup
        fragment = toolkit.sanitize_fragment(body, url, self.profile.wide_removal)
        inner_html = fragment.decode_contents()
        text = html_to_plain_text(inner_html)
        html = truncate_text(sanitize_whitespace(inner_html), toolkit.MAX_HTML_CONTENT)
        return html, len(text)

    async def extract_article_links(
        self, listing_url: str, max_links: Optional[int] = None
    ) -> List[str]:
        """Article URLs linked from a listing page, in page order."""
        limit = max_links if max_links is not None else EXTRACTION_CONFIG[self.max_links_setting]
        html = await self.fetch_html(listing_url)
        links = toolkit.collect_article_links(
            toolkit.parse_html(html), listing_url, self.profile, limit
        )
        self._emit_log(
            "info",
            "extractor.links.collected",
            source_url=listing_url,
            details={"links": len(links), "max_links": limit},
        )
        return links


__all__ = ["BlogExtractor"]
