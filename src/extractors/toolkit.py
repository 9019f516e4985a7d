"""HTML extraction toolkit: title, content, date and image heuristics.

Every locator is an ordered selector cascade taken from
``src.extractors.selectors``; the first candidate that satisfies the
acceptance rule wins.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup, Comment, Tag

from src.contracts.article import UNTITLED_MARKER
from src.utils.datetime_utils import parse_date_or_none, utc_now
from src.utils.text_cleaner import (
    html_to_plain_text,
    normalize_text,
    sanitize_whitespace,
    truncate_text,
)

from .selectors import (
    BLOG_PROFILE,
    CONTENT_ACCEPT_LENGTH,
    CONTENT_IMAGE_SELECTORS,
    DATE_SELECTORS,
    IMAGE_SOURCE_ATTRIBUTES,
    LAZY_IMAGE_ATTRIBUTES,
    LINK_ATTRIBUTES,
    MAX_TEXT_CONTENT,
    META_IMAGE_SELECTORS,
    REMOVAL_SELECTORS,
    TITLE_MIN_LENGTH,
    TITLE_SELECTORS,
    TITLE_SEPARATORS,
    SelectorProfile,
)

MAX_HTML_CONTENT = 50_000

_UNSAFE_URL_PREFIXES = ("javascript:", "vbscript:")


@dataclass(frozen=True)
class ContentExtraction:
    """Result of the content cascade.

    ``content`` is sanitized HTML when a selector won and plain text when the
    ``<body>`` fallback was used; ``text`` is always the plain-text view.
    """

    content: str
    text: str
    source: str

    @property
    def is_body_fallback(self) -> bool:
        return self.source == "body"

    @property
    def text_length(self) -> int:
        return len(self.text)


def parse_html(markup: str | bytes) -> BeautifulSoup:
    return BeautifulSoup(markup or "", "html.parser")


def resolve_url(base_url: str, reference: Optional[str]) -> Optional[str]:
    """Resolve ``reference`` against ``base_url`` following RFC 3986."""
    if reference is None:
        return None
    reference = reference.strip()
    if not reference:
        return None
    lowered = reference.lower()
    if lowered.startswith(_UNSAFE_URL_PREFIXES):
        return None
    if lowered.startswith("data:") or not base_url:
        return reference
    return urljoin(base_url, reference)


def _element_text(element: Tag) -> str:
    return normalize_text(element.get_text(" ", strip=True))


def _first(soup: BeautifulSoup | Tag, selector: str) -> Optional[Tag]:
    return soup.select_one(selector)


def split_page_title(page_title: str) -> str:
    """Keep the part of a ``<title>`` before the first site-name separator."""
    for separator in TITLE_SEPARATORS:
        page_title = page_title.split(separator)[0]
    return page_title.strip()


def extract_title(
    soup: BeautifulSoup, url: str = "", selectors: Sequence[str] = TITLE_SELECTORS
) -> str:
    for selector in selectors:
        element = _first(soup, selector)
        if element is None:
            continue
        title = _element_text(element)
        if len(title) > TITLE_MIN_LENGTH:
            return title

    if soup.title is not None:
        page_title = split_page_title(_element_text(soup.title))
        if page_title:
            return page_title
    return UNTITLED_MARKER


def strip_dangerous_attributes(fragment: Tag) -> None:
    """Drop inline event handlers and script URLs in ``href``/``src``."""
    for tag in [fragment, *fragment.find_all(True)]:
        for attribute in list(tag.attrs):
            if attribute.lower().startswith("on"):
                del tag.attrs[attribute]
                continue
            if attribute in ("href", "src"):
                value = tag.attrs.get(attribute)
                if isinstance(value, str) and value.strip().lower().startswith(
                    _UNSAFE_URL_PREFIXES
                ):
                    del tag.attrs[attribute]


def absolutize_images(fragment: Tag, base_url: str) -> None:
    """Point every ``<img>`` at an absolute ``src``, promoting lazy-load attributes."""
    for image in fragment.find_all("img"):
        source = next(
            (
                image.get(attribute)
                for attribute in IMAGE_SOURCE_ATTRIBUTES
                if isinstance(image.get(attribute), str) and image.get(attribute).strip()
            ),
            None,
        )
        resolved = resolve_url(base_url, source)
        if not resolved:
            continue
        image["src"] = resolved
        for attribute in LAZY_IMAGE_ATTRIBUTES:
            if attribute in image.attrs:
                del image.attrs[attribute]


def remove_matching(fragment: Tag, selectors: Iterable[str]) -> None:
    joined = ", ".join(selectors)
    if not joined:
        return
    for node in fragment.select(joined):
        if node.decomposed:
            continue
        node.decompose()


def sanitize_fragment(
    element: Tag, base_url: str, removal: Sequence[str] = REMOVAL_SELECTORS
) -> Tag:
    """Return a cleaned copy of ``element``; the parsed page is left untouched."""
    fragment = copy.copy(element)
    for comment in fragment.find_all(string=lambda value: isinstance(value, Comment)):
        comment.extract()
    remove_matching(fragment, removal)
    strip_dangerous_attributes(fragment)
    absolutize_images(fragment, base_url)
    return fragment


def sanitize_html(
    markup: str, base_url: str, removal: Sequence[str] = REMOVAL_SELECTORS
) -> str:
    """Sanitize an HTML snippet (feed content) and rewrite its image URLs."""
    if not markup:
        return ""
    soup = parse_html(markup)
    for comment in soup.find_all(string=lambda value: isinstance(value, Comment)):
        comment.extract()
    remove_matching(soup, removal)
    strip_dangerous_attributes(soup)
    absolutize_images(soup, base_url)
    return sanitize_whitespace(soup.decode())


def extract_body_text(
    soup: BeautifulSoup, url: str, removal: Sequence[str] = REMOVAL_SELECTORS
) -> str:
    """Plain text of ``<body>`` after applying ``removal``, capped for storage."""
    body = soup.body or soup
    fragment = sanitize_fragment(body, url, removal)
    return truncate_text(html_to_plain_text(fragment.decode_contents()), MAX_TEXT_CONTENT)


def extract_content(
    soup: BeautifulSoup,
    url: str,
    profile: SelectorProfile = BLOG_PROFILE,
    *,
    accept_length: int = CONTENT_ACCEPT_LENGTH,
) -> ContentExtraction:
    for selector in profile.content:
        element = _first(soup, selector)
        if element is None:
            continue
        fragment = sanitize_fragment(element, url, profile.removal)
        inner_html = fragment.decode_contents()
        text = html_to_plain_text(inner_html)
        if len(text) > accept_length:
            html = truncate_text(sanitize_whitespace(inner_html), MAX_HTML_CONTENT)
            return ContentExtraction(content=html, text=text, source=selector)

    body_text = extract_body_text(soup, url, profile.removal)
    return ContentExtraction(content=body_text, text=body_text, source="body")


def _date_candidates(element: Tag, attributes: Sequence[str]) -> Iterable[str]:
    for attribute in attributes:
        if attribute == "text":
            yield element.get_text(" ", strip=True)
        else:
            value = element.get(attribute)
            if isinstance(value, str):
                yield value


def extract_publish_date(soup: BeautifulSoup) -> datetime:
    for selector, attributes in DATE_SELECTORS:
        element = _first(soup, selector)
        if element is None:
            continue
        for candidate in _date_candidates(element, attributes):
            parsed = parse_date_or_none(candidate)
            if parsed is not None:
                return parsed
    return utc_now()


def extract_image(soup: BeautifulSoup, url: str) -> Optional[str]:
    for selector in CONTENT_IMAGE_SELECTORS:
        element = _first(soup, selector)
        if element is None:
            continue
        for attribute in IMAGE_SOURCE_ATTRIBUTES:
            resolved = resolve_url(url, element.get(attribute))
            if resolved and not resolved.startswith("data:"):
                return resolved

    for selector in META_IMAGE_SELECTORS:
        element = _first(soup, selector)
        if element is None:
            continue
        resolved = resolve_url(url, element.get("content"))
        if resolved:
            return resolved
    return None


def collect_article_links(
    soup: BeautifulSoup,
    base_url: str,
    profile: SelectorProfile = BLOG_PROFILE,
    max_links: int = 20,
) -> List[str]:
    """Article-looking links of a listing page, in document order per selector."""
    include = [re.compile(pattern) for pattern in profile.article_paths]
    exclude = [re.compile(pattern) for pattern in profile.excluded_paths]
    links: List[str] = []
    seen = set()

    for selector in profile.links:
        for element in soup.select(selector):
            if len(links) >= max_links:
                return links
            href = next(
                (
                    element.get(attribute)
                    for attribute in LINK_ATTRIBUTES
                    if isinstance(element.get(attribute), str)
                ),
                None,
            )
            if not href or href.strip().lower().startswith(("mailto:", "tel:", "#")):
                continue
            resolved = resolve_url(base_url, href)
            if not resolved:
                continue
            resolved = urldefrag(resolved).url
            parsed = urlparse(resolved)
            if parsed.scheme not in ("http", "https"):
                continue
            path = parsed.path or "/"
            if any(pattern.search(path) for pattern in exclude):
                continue
            if not any(pattern.search(path) for pattern in include):
                continue
            if resolved in seen:
                continue
            seen.add(resolved)
            links.append(resolved)
    return links
