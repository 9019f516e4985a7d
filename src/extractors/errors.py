"""Error taxonomy shared by every extractor."""

from __future__ import annotations

import asyncio
import ssl
from typing import Optional, Type
from xml.parsers.expat import ExpatError
from xml.sax import SAXException

import httpx

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})

NETWORK_ERROR_SIGNATURES = (
    "timeout",
    "timed out",
    "etimedout",
    "econnreset",
    "connection reset",
    "econnrefused",
    "connection refused",
    "connection aborted",
    "enotfound",
    "eai_again",
    "getaddrinfo",
    "name or service not known",
    "temporary failure in name resolution",
    "nodename nor servname",
    "socket",
    "ssl",
    "tls",
    "certificate",
    "network is unreachable",
    "net::err_",
)

PARSE_ERROR_SIGNATURES = (
    "xml",
    "parse",
    "syntax error",
    "not well-formed",
    "undefined entity",
    "mismatched tag",
    "invalid token",
    "unclosed token",
    "no element found",
    "malformed",
    "unrecognized feed",
)


class ExtractionError(Exception):
    """Base class for extraction failures."""

    retryable = False

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class FetchError(ExtractionError):
    """Network, DNS, TLS or timeout failure."""

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(message, url=url)
        self.status_code = status_code
        if retryable is not None:
            self.retryable = retryable
        elif status_code is not None:
            self.retryable = status_code in RETRYABLE_STATUS_CODES


class ParseError(ExtractionError):
    """Malformed feed or HTML payload."""


class ContentInsufficientError(ExtractionError):
    """Title or content below the accepted length floor."""


class ConfigurationError(ExtractionError):
    """Unresolvable input or missing configuration; never retried."""


def _matches(message: str, signatures: tuple[str, ...]) -> bool:
    lowered = message.lower()
    return any(signature in lowered for signature in signatures)


def _is_playwright_timeout(exc: BaseException) -> bool:
    # playwright raises its own TimeoutError, not a builtin subclass
    return type(exc).__name__ == "TimeoutError" and "playwright" in type(exc).__module__


def classify_error(exc: BaseException) -> Type[ExtractionError]:
    """Map an arbitrary exception to the network or parse error class."""

    if isinstance(exc, ExtractionError):
        return type(exc)
    if isinstance(
        exc,
        (httpx.TransportError, asyncio.TimeoutError, TimeoutError, ssl.SSLError, OSError),
    ):
        return FetchError
    if isinstance(exc, httpx.HTTPStatusError):
        return FetchError
    if _is_playwright_timeout(exc):
        return FetchError
    if isinstance(exc, (ExpatError, SAXException, UnicodeDecodeError)):
        return ParseError

    message = str(exc)
    if _matches(message, NETWORK_ERROR_SIGNATURES):
        return FetchError
    if _matches(message, PARSE_ERROR_SIGNATURES):
        return ParseError
    return ParseError


def to_extraction_error(exc: BaseException, url: Optional[str] = None) -> ExtractionError:
    """Wrap ``exc`` in its classified error type, keeping HTTP status details."""

    if isinstance(exc, ExtractionError):
        if exc.url is None:
            exc.url = url
        return exc
    error_class = classify_error(exc)
    message = str(exc) or type(exc).__name__
    if error_class is FetchError:
        status_code = None
        if isinstance(exc, httpx.HTTPStatusError):
            status_code = exc.response.status_code
        error = FetchError(message, url=url, status_code=status_code)
    else:
        error = error_class(message, url=url)
    error.__cause__ = exc
    return error
