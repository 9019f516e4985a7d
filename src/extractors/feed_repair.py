# src/extractors/feed_repair.py
# Reparación de feeds XML mal formados
# ====================================

"""
Utilidades para recuperar feeds RSS/Atom que el parser rechaza.

Muchos feeds reales llegan con problemas típicos: BOM, basura antes del
elemento raíz, ``&`` sin escapar, encoding declarado incorrecto o caracteres
de control. Este módulo detecta el encoding, limpia el texto y lo re-emite
como UTF-8 con una declaración XML normalizada.

Las pasadas se aplican en escalera (``repair``): cada nivel incluye los
anteriores y agrega una limpieza más agresiva.
"""

from __future__ import annotations

import codecs
import re
from dataclasses import dataclass
from typing import Optional, Union

import chardet

MAX_REPAIR_LEVEL = 3
# latin-1 decodes any byte string, so it must stay last
FALLBACK_ENCODINGS = ("utf-8", "gbk", "gb18030", "windows-1252", "latin-1")
MIN_DETECTION_CONFIDENCE = 0.5
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([^;\s\"']+)", re.I)
_DECLARED_ENCODING_RE = re.compile(r"<\?xml[^>]*encoding\s*=\s*[\"']([^\"']+)[\"']", re.I)
_ROOT_MARKER_RE = re.compile(r"<\?xml|<rss\b|<feed\b|<rdf:RDF\b|<atom\b", re.I)
_FEED_ROOT_RE = re.compile(r"<(?:rss|feed|rdf:RDF|atom)\b", re.I)
_LEADING_JUNK_RE = re.compile(r"^[\s\x00-\x1f\x7f-\x9f]+")
_DECLARATION_RE = re.compile(r"^<\?xml([^>]*?)\?>")
_VERSION_RE = re.compile(r"version\s*=\s*[\"']([^\"']+)[\"']")
_STANDALONE_RE = re.compile(r"standalone\s*=\s*[\"'](yes|no)[\"']")
_PROTECTED_RE = re.compile(r"<!\[CDATA\[.*?\]\]>|<!--.*?-->", re.S)
_BARE_AMPERSAND_RE = re.compile(r"&(?!(?:amp|lt|gt|quot|apos|#[0-9]+|#x[0-9a-fA-F]+);)")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")
_NON_ASCII_RE = re.compile(r"[^\t\n\r\x20-\x7e]")

# BOMs as they appear after decoding with a single-byte codec
_MISDECODED_BOMS = ("ï»¿", "ÿþ", "þÿ")


def _codec_name(label: str) -> Optional[str]:
    try:
        return codecs.lookup(label.strip()).name
    except LookupError:
        return None


def _decodes(raw: bytes, encoding: str) -> bool:
    try:
        raw.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        return False
    return True


def _has_feed_root(raw: bytes, encoding: str) -> bool:
    try:
        decoded = raw.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        return False
    return bool(_ROOT_MARKER_RE.search(decoded))


def charset_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    match = _CHARSET_RE.search(content_type)
    return match.group(1) if match else None


def detect_encoding(raw: bytes, content_type: Optional[str] = None) -> str:
    """
    Determina el encoding del payload.

    Orden: BOM UTF-16, charset del Content-Type, declaración XML, UTF-8
    estricto, la detección estadística de ``chardet`` y una lista fija de
    encodings comunes. Cada candidato sin cabecera explícita tiene que
    decodificar sin errores y dejar ver un elemento raíz de feed; si nada
    encaja se asume UTF-8.
    """
    if raw.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return "utf-16"

    header_charset = charset_from_content_type(content_type)
    if header_charset:
        name = _codec_name(header_charset)
        if name and _decodes(raw, name):
            return name

    preview = raw[:200].decode("ascii", errors="ignore")
    declared = _DECLARED_ENCODING_RE.search(preview)
    if declared:
        name = _codec_name(declared.group(1))
        if name and _decodes(raw, name):
            return name

    if _has_feed_root(raw, "utf-8"):
        return "utf-8"

    guess = chardet.detect(raw)
    guessed = _codec_name(guess.get("encoding") or "")
    if (
        guessed
        and (guess.get("confidence") or 0.0) >= MIN_DETECTION_CONFIDENCE
        and _has_feed_root(raw, guessed)
    ):
        return guessed

    for encoding in FALLBACK_ENCODINGS:
        if _has_feed_root(raw, encoding):
            return _codec_name(encoding) or encoding
    return "utf-8"


def decode_payload(
    raw: Union[bytes, str],
    content_type: Optional[str] = None,
    encoding: Optional[str] = None,
) -> str:
    if isinstance(raw, str):
        return raw
    return raw.decode(encoding or detect_encoding(raw, content_type), errors="replace")


def strip_bom(text: str) -> str:
    text = text.lstrip("\ufeff")
    for marker in _MISDECODED_BOMS:
        if text.startswith(marker):
            return text[len(marker):]
    return text


def strip_leading_garbage(text: str) -> str:
    """Drop whatever precedes the XML declaration or the feed root element."""
    text = _LEADING_JUNK_RE.sub("", text)
    if text.startswith("<?xml"):
        return text
    root = _ROOT_MARKER_RE.search(text)
    if root and "<" not in text[: root.start()]:
        return text[root.start():]
    if not text.startswith("<"):
        first_tag = text.find("<")
        if first_tag > 0:
            return text[first_tag:]
    return text


def escape_bare_ampersands(text: str) -> str:
    """Escape ``&`` that do not start an XML entity; CDATA and comments stay verbatim."""
    pieces = []
    position = 0
    for match in _PROTECTED_RE.finditer(text):
        pieces.append(_BARE_AMPERSAND_RE.sub("&amp;", text[position:match.start()]))
        pieces.append(match.group(0))
        position = match.end()
    pieces.append(_BARE_AMPERSAND_RE.sub("&amp;", text[position:]))
    return "".join(pieces)


def normalize_declaration(text: str) -> str:
    """Rewrite or insert the XML declaration; the text is always UTF-8 afterwards."""
    stripped = text.lstrip()
    declaration = _DECLARATION_RE.match(stripped)
    if declaration:
        attributes = declaration.group(1)
        version = _VERSION_RE.search(attributes)
        standalone = _STANDALONE_RE.search(attributes)
        normalized = f'<?xml version="{version.group(1) if version else "1.0"}" encoding="UTF-8"'
        if standalone:
            normalized += f' standalone="{standalone.group(1)}"'
        return normalized + "?>" + stripped[declaration.end():]
    if _FEED_ROOT_RE.match(stripped):
        return f"{XML_DECLARATION}\n{stripped}"
    return text


def preprocess(
    raw: Union[bytes, str],
    content_type: Optional[str] = None,
    *,
    encoding: Optional[str] = None,
) -> str:
    """First repair pass: decode, BOM, leading garbage, bare ``&``, declaration."""
    text = decode_payload(raw, content_type, encoding)
    text = strip_bom(text)
    text = strip_leading_garbage(text)
    text = escape_bare_ampersands(text)
    return normalize_declaration(text)


def strip_control_chars(text: str) -> str:
    """Remove C0/C1 control characters except tab and newline."""
    return _CONTROL_CHARS_RE.sub("", text.replace("\r\n", "\n"))


def strip_non_ascii(text: str) -> str:
    return _NON_ASCII_RE.sub("", text)


def repair(
    raw: Union[bytes, str],
    level: int,
    content_type: Optional[str] = None,
    *,
    encoding: Optional[str] = None,
) -> str:
    """Apply every repair pass up to ``level`` (1..3)."""
    if not 1 <= level <= MAX_REPAIR_LEVEL:
        raise ValueError(f"repair level must be between 1 and {MAX_REPAIR_LEVEL}")
    text = preprocess(raw, content_type, encoding=encoding)
    if level >= 2:
        text = strip_control_chars(text)
    if level >= 3:
        text = strip_non_ascii(text)
    return text


def is_valid_xml(text: str) -> bool:
    """Loose structural check: a declaration or a known feed root is present."""
    if not text or not text.strip() or "<" not in text or ">" not in text:
        return False
    return text.strip().startswith("<?xml") or bool(_FEED_ROOT_RE.search(text))


@dataclass
class FeedParseState:
    """Successive repair attempts against one fetched feed payload."""

    raw: bytes
    content_type: Optional[str] = None
    encoding: Optional[str] = None
    repair_level: int = 0
    last_error: Optional[BaseException] = None

    @property
    def exhausted(self) -> bool:
        return self.repair_level >= MAX_REPAIR_LEVEL

    def escalate(self) -> str:
        """Move one rung up the ladder and return the repaired text."""
        if self.exhausted:
            raise ValueError("repair ladder already exhausted")
        if self.encoding is None:
            self.encoding = detect_encoding(self.raw, self.content_type)
        self.repair_level += 1
        return repair(self.raw, self.repair_level, self.content_type, encoding=self.encoding)


__all__ = [
    "FeedParseState",
    "MAX_REPAIR_LEVEL",
    "decode_payload",
    "detect_encoding",
    "escape_bare_ampersands",
    "is_valid_xml",
    "normalize_declaration",
    "preprocess",
    "repair",
    "strip_bom",
    "strip_control_chars",
    "strip_leading_garbage",
    "strip_non_ascii",
]
