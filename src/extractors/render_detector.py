"""Heuristics deciding whether a page needs JavaScript execution."""

from __future__ import annotations

import re
from typing import Optional

from config.settings import EXTRACTION_CONFIG

from . import toolkit
from .selectors import BLOG_PROFILE, FRAMEWORK_MARKERS, SelectorProfile

_NOSCRIPT_RE = re.compile(r"<noscript\b[^>]*>(.*?)</noscript\s*>", re.S | re.I)
_NOSCRIPT_JS_RE = re.compile(r"javascript|enable\s+js|\bjs\b", re.I)


def has_framework_marker(html: str) -> bool:
    return any(marker in html for marker in FRAMEWORK_MARKERS)


def noscript_mentions_javascript(html: str) -> bool:
    return any(_NOSCRIPT_JS_RE.search(block) for block in _NOSCRIPT_RE.findall(html))


def needs_render(
    url: str,
    html: Optional[str],
    *,
    profile: SelectorProfile = BLOG_PROFILE,
    min_html_length: Optional[int] = None,
    min_text_length: Optional[int] = None,
) -> bool:
    """Return True when static HTML is unlikely to hold the article.

    String checks run first; the toolkit extraction only runs when all of
    them pass.
    """
    if min_html_length is None:
        min_html_length = EXTRACTION_CONFIG["render_min_html_chars"]
    if min_text_length is None:
        min_text_length = EXTRACTION_CONFIG["render_min_text_chars"]

    if not html or len(html.strip()) < min_html_length:
        return True
    if has_framework_marker(html):
        return True
    if noscript_mentions_javascript(html):
        return True

    extraction = toolkit.extract_content(toolkit.parse_html(html), url, profile)
    return extraction.text_length < min_text_length
