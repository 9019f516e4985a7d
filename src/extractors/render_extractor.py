"""Headless-browser extraction for pages that only render client side."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config.settings import RENDER_CONFIG
from src.contracts.article import UNTITLED_MARKER, ArticleRecord, build_article_record
from src.contracts.extraction import ExtractionOutcome, ExtractionStrategy
from src.utils.datetime_utils import parse_date_or_none, utc_now

from .base_extractor import BaseExtractor
from .browser import BrowserManager, get_browser_manager
from .errors import ExtractionError, FetchError, ParseError
from .selectors import BLOG_PROFILE, SelectorProfile

# Runs inside the rendered document. It mirrors the toolkit cascades; the
# selector lists arrive as the argument so both sides read the same data.
IN_PAGE_EXTRACTION_SCRIPT = r"""
(cfg) => {
  const collapse = (value) => (value || '').replace(/\s+/g, ' ').trim();
  const textOf = (el) => (el ? collapse(el.textContent) : '');
  const unsafe = /^\s*(javascript|vbscript):/i;
  const absolute = (ref) => {
    if (!ref) return null;
    const value = ref.trim();
    if (!value || unsafe.test(value)) return null;
    if (/^data:/i.test(value)) return value;
    try {
      return new URL(value, document.baseURI).href;
    } catch (e) {
      return null;
    }
  };

  let title = '';
  for (const selector of cfg.title) {
    const candidate = textOf(document.querySelector(selector));
    if (candidate.length > cfg.titleMinLength) {
      title = candidate;
      break;
    }
  }
  if (!title && document.title) {
    let pageTitle = document.title;
    for (const separator of cfg.titleSeparators) {
      pageTitle = pageTitle.split(separator)[0];
    }
    title = pageTitle.trim();
  }

  const clean = (root, removal) => {
    const clone = root.cloneNode(true);
    if (removal) {
      clone.querySelectorAll(removal).forEach((node) => node.remove());
    }
    const walker = document.createTreeWalker(clone, NodeFilter.SHOW_COMMENT);
    const comments = [];
    while (walker.nextNode()) comments.push(walker.currentNode);
    comments.forEach((node) => node.remove());
    [clone, ...clone.querySelectorAll('*')].forEach((el) => {
      for (const attr of Array.from(el.attributes)) {
        const name = attr.name.toLowerCase();
        if (name.startsWith('on')) {
          el.removeAttribute(attr.name);
        } else if ((name === 'href' || name === 'src') && unsafe.test(attr.value)) {
          el.removeAttribute(attr.name);
        }
      }
    });
    clone.querySelectorAll('img').forEach((img) => {
      let source = null;
      for (const attribute of cfg.imageAttributes) {
        const value = img.getAttribute(attribute);
        if (value && value.trim()) {
          source = value;
          break;
        }
      }
      const resolved = absolute(source);
      if (resolved) {
        img.setAttribute('src', resolved);
        cfg.lazyAttributes.forEach((attribute) => img.removeAttribute(attribute));
      }
    });
    return clone;
  };

  let content = '';
  let source = 'body';
  for (const selector of cfg.content) {
    const element = document.querySelector(selector);
    if (!element) continue;
    const cleaned = clean(element, cfg.removal);
    if (collapse(cleaned.textContent).length > cfg.contentAcceptLength) {
      content = cleaned.innerHTML;
      source = selector;
      break;
    }
  }
  if (!content && document.body) {
    content = collapse(clean(document.body, cfg.removal).textContent).slice(0, cfg.bodyTextMaxLength);
  }

  let publishDate = null;
  for (const [selector, attributes] of cfg.dates) {
    const element = document.querySelector(selector);
    if (!element) continue;
    for (const attribute of attributes) {
      const value = attribute === 'text' ? textOf(element) : element.getAttribute(attribute);
      if (value && !isNaN(new Date(value).getTime())) {
        publishDate = value;
        break;
      }
    }
    if (publishDate) break;
  }

  let image = null;
  for (const selector of cfg.contentImages) {
    const element = document.querySelector(selector);
    if (!element) continue;
    for (const attribute of cfg.imageAttributes) {
      const resolved = absolute(element.getAttribute(attribute));
      if (resolved && !/^data:/i.test(resolved)) {
        image = resolved;
        break;
      }
    }
    if (image) break;
  }
  if (!image) {
    for (const selector of cfg.metaImages) {
      const element = document.querySelector(selector);
      const resolved = element ? absolute(element.getAttribute('content')) : null;
      if (resolved) {
        image = resolved;
        break;
      }
    }
  }

  return { title, content, source, publishDate, image };
}
"""


class HeadlessRenderExtractor(BaseExtractor):
    """
    Extractor que ejecuta la página en chromium antes de leerla.

    Comparte un único navegador (``BrowserManager``) con el resto del
    proceso; cada extracción abre su propia página y la cierra siempre,
    incluso cuando la navegación o la evaluación fallan.
    """

    def __init__(
        self,
        *,
        browser_manager: Optional[BrowserManager] = None,
        profile: SelectorProfile = BLOG_PROFILE,
        render_config: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._browser_manager = browser_manager
        self.profile = profile
        self.render_config = dict(render_config or RENDER_CONFIG)

    @property
    def browser_manager(self) -> BrowserManager:
        if self._browser_manager is None:
            self._browser_manager = get_browser_manager()
        return self._browser_manager

    def _render_options(self, options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        opts = {**self.options, **(options or {})}
        navigation_timeout = opts.get("navigation_timeout_ms")
        if navigation_timeout is None and opts.get("timeout") is not None:
            navigation_timeout = float(opts["timeout"]) * 1000
        return {
            "navigation_timeout_ms": navigation_timeout or self.render_config["navigation_timeout_ms"],
            "selector_timeout_ms": opts.get(
                "selector_timeout_ms", self.render_config["selector_timeout_ms"]
            ),
            "settle_delay_ms": opts.get("settle_delay_ms", self.render_config["settle_delay_ms"]),
            "wait_until": opts.get("wait_until", self.render_config["wait_until"]),
            "wait_for_selector": opts.get("wait_for_selector"),
            "block_resources": opts.get("block_resources", self.render_config["block_resources"]),
        }

    async def _install_resource_filter(self, page: Any) -> None:
        allowed = frozenset(self.render_config["allowed_resource_types"])

        async def _route(route: Any) -> None:
            if route.request.resource_type in allowed:
                await route.continue_()
            else:
                await route.abort()

        await page.route("**/*", _route)

    async def _navigate(self, page: Any, url: str, opts: Dict[str, Any]) -> None:
        if opts["block_resources"]:
            await self._install_resource_filter(page)
        try:
            await page.goto(url, wait_until=opts["wait_until"], timeout=opts["navigation_timeout_ms"])
        except PlaywrightError as exc:
            raise FetchError(f"Navigation failed: {exc}", url=url) from exc

        if opts["wait_for_selector"]:
            try:
                await page.wait_for_selector(
                    opts["wait_for_selector"], timeout=opts["selector_timeout_ms"]
                )
            except PlaywrightTimeoutError:
                self._emit_log(
                    "debug",
                    "extractor.render.selector_timeout",
                    source_url=url,
                    details={"selector": opts["wait_for_selector"]},
                )
        await page.wait_for_timeout(opts["settle_delay_ms"])

    async def fetch_html(self, url: str, options: Optional[Dict[str, Any]] = None) -> str:
        """Return the serialized DOM after client-side rendering."""
        opts = self._render_options(options)
        async with self.browser_manager.page() as page:
            await self._navigate(page, url, opts)
            try:
                return await page.content()
            except PlaywrightError as exc:
                raise FetchError(f"Could not read rendered page: {exc}", url=url) from exc

    async def extract_content(
        self, url: str, options: Optional[Dict[str, Any]] = None
    ) -> Optional[ArticleRecord]:
        opts = self._render_options(options)
        started = time.perf_counter()
        try:
            async with self.browser_manager.page() as page:
                await self._navigate(page, url, opts)
                try:
                    data = await page.evaluate(
                        IN_PAGE_EXTRACTION_SCRIPT, self.profile.to_render_payload()
                    )
                except PlaywrightError as exc:
                    raise ParseError(f"In-page extraction failed: {exc}", url=url) from exc
        except ExtractionError as exc:
            outcome = (
                ExtractionOutcome.FETCH_ERROR
                if isinstance(exc, FetchError)
                else ExtractionOutcome.PARSE_ERROR
            )
            self._record_attempt(url, ExtractionStrategy.HEADLESS_RENDER, outcome, started, exc)
            raise

        data = data or {}
        record = build_article_record(
            title=data.get("title") or UNTITLED_MARKER,
            content=data.get("content"),
            url=url,
            image_url=data.get("image"),
            publish_date=parse_date_or_none(data.get("publishDate")) or utc_now(),
        )
        self._record_attempt(
            url,
            ExtractionStrategy.HEADLESS_RENDER,
            ExtractionOutcome.SUCCESS if record else ExtractionOutcome.CONTENT_TOO_THIN,
            started,
        )
        self._emit_log(
            "info",
            "extractor.render.completed",
            source_url=url,
            latency=time.perf_counter() - started,
            details={"content_source": data.get("source"), "accepted": record is not None},
        )
        return self._accept_record(url, record)


__all__ = ["HeadlessRenderExtractor", "IN_PAGE_EXTRACTION_SCRIPT"]
