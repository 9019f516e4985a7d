from __future__ import annotations

import html as _html
import re
import unicodedata

_COMMENT_RE = re.compile(r"<!--.*?(?:-->|$)", re.S)
_DROPPED_BLOCK_RE = re.compile(
    r"<(script|style|iframe)\b[^>]*>.*?(?:</\1\s*>|$)", re.S | re.I
)
_BREAK_RE = re.compile(r"<br\s*/?>", re.I)
_BLOCK_CLOSE_RE = re.compile(
    r"</(?:p|div|h[1-6]|li|ul|ol|tr|table|section|article|blockquote|pre|header"
    r"|footer|aside|figure|figcaption|dl|dt|dd|main|nav)\s*>",
    re.I,
)
_TAG_RE = re.compile(r"</?[A-Za-z][^>]*>|<![^>]*>|<\?[^>]*>")
_HTML_SNIFF_RE = re.compile(r"<\s*/?\s*[A-Za-z][A-Za-z0-9-]*(?:\s[^>]*)?/?>")
_INLINE_SPACE_RE = re.compile(r"[ \t\f\v\u00a0]+")
_PRESERVED_BLOCK_RE = re.compile(r"(<(pre|textarea)\b[^>]*>.*?</\2\s*>)", re.S | re.I)
_INTER_TAG_SPACE_RE = re.compile(r">\s+<")


def normalize_text(text: str) -> str:
    if not text:
        return ""
    # HTML entities and unicode normalization
    text = _html.unescape(text)
    text = text.replace("\x00", "").replace("\r", " ").replace("\n", " ")
    text = unicodedata.normalize("NFKC", text)
    text = " ".join(text.split())
    return text.strip()


def looks_like_html(text: str) -> bool:
    """Return True when the text contains at least one tag-shaped token."""
    if not text or "<" not in text:
        return False
    return bool(_HTML_SNIFF_RE.search(text))


def html_to_plain_text(markup: str) -> str:
    """Convert HTML into plain text with one text block per line.

    Comments, script/style/iframe blocks and tags are removed, block closers
    and ``<br>`` become newlines, entities are decoded and blank lines are
    collapsed.
    """
    if not markup:
        return ""
    text = _COMMENT_RE.sub("", markup)
    text = _DROPPED_BLOCK_RE.sub("", text)
    text = _BREAK_RE.sub("\n", text)
    text = _BLOCK_CLOSE_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    text = _html.unescape(text)
    lines = (_INLINE_SPACE_RE.sub(" ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def plain_text_length(content: str) -> int:
    """Length of the visible text of ``content``, HTML or not."""
    if looks_like_html(content):
        return len(html_to_plain_text(content))
    return len(content.strip()) if content else 0


def sanitize_whitespace(content: str) -> str:
    """Collapse whitespace, keeping markup formatting intact for HTML content."""
    if not content:
        return ""
    if not looks_like_html(content):
        return " ".join(content.split())

    parts = _PRESERVED_BLOCK_RE.split(content)
    # split() yields (text, preserved_block, tag_name) triples
    cleaned: list[str] = []
    for index, part in enumerate(parts):
        position = index % 3
        if position == 2:
            continue
        if position == 1:
            cleaned.append(part)
            continue
        part = _INTER_TAG_SPACE_RE.sub("> <", part)
        cleaned.append(re.sub(r"\s+", " ", part))
    return "".join(cleaned).strip()


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length].rstrip()


def summarize(content: str, max_length: int = 300) -> str:
    """Plain-text summary of ``content`` hard-truncated to ``max_length``."""
    return truncate_text(" ".join(html_to_plain_text(content).split()), max_length)
