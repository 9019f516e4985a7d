# src/extractors/base_extractor.py
# Clase base para todos los extractores del crawler
# =================================================

"""
Esta clase base define la interfaz común de todos los extractores: feeds,
blogs, sitios de noticias, páginas renderizadas y cuentas sociales.

Además de la interfaz, concentra lo que todos comparten: el cliente HTTP
asíncrono con cabeceras de navegador, la traducción de errores de red a la
taxonomía del crawler, los logs estructurados y el registro de intentos de
extracción que alimenta la escalada estático -> navegador.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

import httpx

from config.settings import HTTP_CONFIG
from src.contracts.article import ArticleRecord
from src.contracts.extraction import (
    ExtractionAttempt,
    ExtractionOutcome,
    ExtractionStrategy,
)
from src.utils.logger import get_logger, log_async_timing

from .errors import FetchError, to_extraction_error

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from src.utils.logger import CrawlerLogger

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"
MAX_TRACKED_ATTEMPTS = 200


def build_browser_headers(accept: str = HTML_ACCEPT) -> Dict[str, str]:
    """Cabeceras que imitan a un navegador de escritorio."""
    return {
        "User-Agent": HTTP_CONFIG["user_agent"],
        "Accept": accept,
        "Accept-Language": HTTP_CONFIG["accept_language"],
        "Accept-Encoding": "gzip, deflate",
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
    }


def build_http_client() -> httpx.AsyncClient:
    """Async client with browser headers, redirects and the configured timeout."""
    return httpx.AsyncClient(
        headers=build_browser_headers(),
        follow_redirects=True,
        max_redirects=HTTP_CONFIG["max_redirects"],
        timeout=HTTP_CONFIG["request_timeout"],
        verify=HTTP_CONFIG["verify_tls"],
    )


class BaseExtractor(ABC):
    """
    Clase base abstracta para todos los extractores.

    Cada subclase implementa ``extract_content``; el resto (HTTP, errores,
    logging, estadísticas) se hereda de aquí para que todos los extractores
    se comporten igual ante fallas de red y timeouts.
    """

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        logger_factory: Optional["CrawlerLogger"] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.extractor_type = self.__class__.__name__
        self.options: Dict[str, Any] = dict(options or {})
        self._client = client
        self._owns_client = client is None
        self.attempts: List[ExtractionAttempt] = []
        self.stats = {
            "fetches": 0,
            "fetch_errors": 0,
            "articles_extracted": 0,
            "articles_discarded": 0,
        }

        self.logger_factory: "CrawlerLogger" = logger_factory or get_logger()
        self.module_logger = self.logger_factory.create_module_logger(
            f"extractors.{self.extractor_type.lower()}"
        )
        self._active_trace_id: Optional[str] = None
        self._active_session_id: Optional[str] = None

    @abstractmethod
    async def extract_content(
        self, url: str, options: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Extrae contenido desde ``url``.

        Los extractores de páginas retornan un ``ArticleRecord`` o ``None``
        cuando el contenido es insuficiente; el extractor social retorna una
        lista de registros.
        """

    # Cliente HTTP compartido
    # =======================

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_http_client()
            self._owns_client = True
        return self._client

    def share_client(self) -> httpx.AsyncClient:
        """Expose the client so delegated extractors reuse the same pool."""
        return self.client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    @log_async_timing()
    async def fetch(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        accept: str = HTML_ACCEPT,
    ) -> httpx.Response:
        """
        GET ``url`` y retorna la respuesta exitosa.

        Cualquier falla (DNS, TLS, timeout, estado HTTP de error) se traduce a
        ``FetchError``; el timeout expirado es un ``FetchError`` reintentable.
        """
        self.stats["fetches"] += 1
        request_timeout = timeout if timeout is not None else HTTP_CONFIG["request_timeout"]
        started = time.perf_counter()
        try:
            response = await self.client.get(
                url, timeout=request_timeout, headers={"Accept": accept}
            )
            response.raise_for_status()
        except Exception as exc:
            self.stats["fetch_errors"] += 1
            error = to_extraction_error(exc, url)
            self._emit_log(
                "warning",
                "extractor.fetch.failed",
                source_url=url,
                latency=time.perf_counter() - started,
                details={
                    "error": str(exc) or type(exc).__name__,
                    "error_type": type(error).__name__,
                    "status_code": getattr(error, "status_code", None),
                    "retryable": error.retryable,
                },
            )
            raise error from exc

        if len(response.content) > HTTP_CONFIG["max_response_bytes"]:
            self._emit_log(
                "warning",
                "extractor.fetch.too_large",
                source_url=url,
                details={"bytes": len(response.content)},
            )
        return response

    async def fetch_html(self, url: str, options: Optional[Dict[str, Any]] = None) -> str:
        """Descarga HTML estático con cabeceras de navegador."""
        opts = {**self.options, **(options or {})}
        response = await self.fetch(url, timeout=opts.get("timeout"))
        return response.text

    async def fetch_bytes(
        self, url: str, *, timeout: Optional[float] = None, accept: str = FEED_ACCEPT
    ) -> Tuple[bytes, Dict[str, str]]:
        """Descarga el payload crudo; usado por la reparación de feeds."""
        response = await self.fetch(url, timeout=timeout, accept=accept)
        return response.content, dict(response.headers)

    # Intentos de extracción
    # ======================

    def _record_attempt(
        self,
        url: str,
        strategy: ExtractionStrategy,
        outcome: ExtractionOutcome,
        started: float,
        error: Optional[BaseException] = None,
    ) -> ExtractionAttempt:
        attempt = ExtractionAttempt(
            source_url=url,
            strategy=strategy,
            outcome=outcome,
            elapsed=time.perf_counter() - started,
            error=str(error) if error is not None else None,
        )
        self.attempts.append(attempt)
        if len(self.attempts) > MAX_TRACKED_ATTEMPTS:
            del self.attempts[: len(self.attempts) - MAX_TRACKED_ATTEMPTS]
        self._emit_log(
            "debug",
            "extractor.attempt.recorded",
            source_url=url,
            latency=attempt.elapsed,
            details={"strategy": strategy.value, "outcome": outcome.value},
        )
        return attempt

    def _accept_record(self, url: str, record: Optional[ArticleRecord]) -> Optional[ArticleRecord]:
        if record is None:
            self.stats["articles_discarded"] += 1
            self._emit_log("info", "extractor.article.insufficient", source_url=url)
            return None
        self.stats["articles_extracted"] += 1
        return record

    # Logging estructurado
    # ====================

    def set_runtime_context(
        self, *, session_id: Optional[str] = None, trace_id: Optional[str] = None
    ) -> None:
        """Asigna contexto transitorio para logs estructurados."""
        self._active_session_id = session_id
        self._active_trace_id = trace_id

    def _build_log_payload(
        self,
        event: str,
        *,
        source_url: Optional[str] = None,
        source_id: Optional[str] = None,
        latency: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Crea un payload consistente para logs estructurados."""
        payload: Dict[str, Any] = {
            "event": event,
            "trace_id": self._active_trace_id,
            "session_id": self._active_session_id,
            "source_url": source_url,
            "source_id": source_id,
            "extractor_type": self.extractor_type,
            "latency": latency,
        }
        if details:
            payload["details"] = details
        return {key: value for key, value in payload.items() if value is not None}

    def _emit_log(
        self,
        level: str,
        event: str,
        *,
        source_url: Optional[str] = None,
        source_id: Optional[str] = None,
        latency: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Emite logs estructurados garantizando campos de correlación."""
        payload = self._build_log_payload(
            event,
            source_url=source_url,
            source_id=source_id,
            latency=latency,
            details=details,
        )
        log_method = getattr(self.module_logger, level, None)
        if callable(log_method):
            log_method(payload)
        else:  # pragma: no cover - unknown level name
            self.module_logger.info(payload)

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.copy()


__all__ = ["BaseExtractor", "FetchError", "build_browser_headers", "build_http_client"]
