# src/crawler/pipeline.py
# Orquestación de una corrida de crawling
# =======================================

"""
Pipeline de crawling: una cola de fuentes consumida por N workers.

Cada worker toma una fuente, la clasifica, obtiene el extractor adecuado
desde la fábrica y persiste los artículos nuevos a través del colaborador
de almacenamiento. Una fuente que falla nunca detiene al resto: el error
queda registrado en las estadísticas de esa fuente y el worker sigue con
la siguiente.

Las pausas se aplican en dos niveles:

- por worker, al menos ``feed_delay_seconds`` entre lecturas de feeds;
- por dominio, con un lock y el instante de la última petición, para que
  dos workers no golpeen el mismo host al mismo tiempo.
"""

from __future__ import annotations

import asyncio
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse

from config.settings import CRAWLER_CONFIG, RATE_LIMITING_CONFIG
from src.contracts.article import ArticleRecord
from src.contracts.source import SourceDescriptor, SourceType
from src.extractors.factory import ExtractorFactory, classify
from src.storage.collaborators import ArticleStore, resolve
from src.utils.logger import CrawlSessionLogger, get_logger

from .rate_limit_utils import article_delay, calculate_effective_delay, feed_delay

SourceInput = Union[SourceDescriptor, Dict[str, Any]]
Sleep = Callable[[float], Awaitable[Any]]

LISTING_TYPES = frozenset({SourceType.BLOG, SourceType.NEWS, SourceType.WEBSITE})


def _domain_of(url: str) -> str:
    try:
        netloc = urlparse(url if "://" in url else f"//{url}").netloc
    except ValueError:
        netloc = ""
    return (netloc or url).lower()


class CrawlPipeline:
    """
    Corre un lote de fuentes con concurrencia acotada y genera un reporte.

    El pipeline es dueño de la fábrica solo cuando la crea él mismo; en ese
    caso la cierra al terminar cada corrida.
    """

    crawler_type = "pipeline"

    def __init__(
        self,
        store: ArticleStore,
        *,
        factory: Optional[ExtractorFactory] = None,
        workers: Optional[int] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger_factory=None,
    ) -> None:
        self.store = store
        self.logger_factory = logger_factory or get_logger()
        self.module_logger = self.logger_factory.create_module_logger("crawler.pipeline")
        self._owns_factory = factory is None
        self.factory = factory or ExtractorFactory(logger_factory=self.logger_factory)
        self.workers = max(1, int(workers or CRAWLER_CONFIG["workers"]))
        self._sleep = sleep
        self._clock = clock

        self._domain_locks: Dict[str, asyncio.Lock] = {}
        self._domain_next_time: Dict[str, float] = {}
        self._active_session_id: Optional[str] = None
        self._active_trace_id: Optional[str] = None
        self.start_time: Optional[datetime] = None
        self._reset_stats()

    def _reset_stats(self) -> None:
        self.stats = {
            "total_sources_processed": 0,
            "total_articles_found": 0,
            "total_articles_saved": 0,
            "total_errors": 0,
            "processing_time_seconds": 0.0,
        }

    # Logging estructurado
    # ====================

    def _emit_log(
        self,
        level: str,
        event: str,
        *,
        source_id: Optional[str] = None,
        source_url: Optional[str] = None,
        latency: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload: Dict[str, Any] = {
            "event": event,
            "trace_id": self._active_trace_id,
            "session_id": self._active_session_id,
            "source_id": source_id,
            "source_url": source_url,
            "crawler_type": self.crawler_type,
            "latency": latency,
        }
        if details:
            payload["details"] = details
        getattr(self.module_logger, level)(
            {key: value for key, value in payload.items() if value is not None}
        )

    # Pausas
    # ======

    async def _enforce_domain_rate_limit(self, url: str) -> None:
        domain = _domain_of(url)
        lock = self._domain_locks.setdefault(domain, asyncio.Lock())
        async with lock:
            effective_delay = calculate_effective_delay(domain)
            jitter = random.uniform(0, RATE_LIMITING_CONFIG.get("jitter_max", 0.0))
            next_time = self._domain_next_time.get(domain)
            if next_time is not None:
                wait = (next_time + effective_delay + jitter) - self._clock()
                if wait > 0:
                    await self._sleep(wait)
            self._domain_next_time[domain] = self._clock()

    async def _enforce_feed_delay(self, worker_state: Dict[str, Any]) -> None:
        last = worker_state.get("last_feed_at")
        if last is not None:
            wait = (last + feed_delay()) - self._clock()
            if wait > 0:
                await self._sleep(wait)
        worker_state["last_feed_at"] = self._clock()

    # Corrida
    # =======

    @staticmethod
    def _coerce_sources(sources: Iterable[SourceInput]) -> List[SourceDescriptor]:
        return [
            source if isinstance(source, SourceDescriptor) else SourceDescriptor.model_validate(source)
            for source in sources
        ]

    async def run(
        self,
        sources: Iterable[SourceInput],
        *,
        session_id: Optional[str] = None,
        trace_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Procesa todas las fuentes y retorna el reporte de la sesión."""
        descriptors = self._coerce_sources(sources)
        self._active_session_id = session_id or uuid.uuid4().hex[:12]
        self._active_trace_id = trace_id
        self.start_time = datetime.now(timezone.utc)
        self._reset_stats()
        session_logger = CrawlSessionLogger(self._active_session_id, self.crawler_type)
        started = time.perf_counter()

        queue: "asyncio.Queue[Optional[SourceDescriptor]]" = asyncio.Queue()
        ordered_keys: List[str] = []
        for source in descriptors:
            if source.key in ordered_keys:
                self._emit_log(
                    "warning",
                    "crawler.source.duplicate",
                    source_id=source.key,
                    source_url=source.url,
                )
                continue
            ordered_keys.append(source.key)
            queue.put_nowait(source)

        worker_count = min(self.workers, max(1, len(ordered_keys)))
        for _ in range(worker_count):
            queue.put_nowait(None)

        session_logger.log_session_start(len(ordered_keys))
        self._emit_log(
            "info",
            "crawler.batch.start",
            details={"sources": len(ordered_keys), "workers": worker_count},
        )

        results: Dict[str, Dict[str, Any]] = {}
        try:
            await asyncio.gather(
                *(
                    self._worker(queue, results, session_logger)
                    for _ in range(worker_count)
                )
            )
        finally:
            if self._owns_factory:
                await self.factory.aclose()

        source_results = {key: results[key] for key in ordered_keys if key in results}
        self._update_global_stats(source_results, time.perf_counter() - started)
        report = self._generate_crawl_report(source_results)
        session_logger.log_session_summary(report["collection_summary"])
        self._emit_log(
            "info",
            "crawler.batch.completed",
            latency=self.stats["processing_time_seconds"],
            details={
                "articles_saved": self.stats["total_articles_saved"],
                "articles_found": self.stats["total_articles_found"],
                "sources_processed": self.stats["total_sources_processed"],
                "errors": self.stats["total_errors"],
            },
        )
        self._active_session_id = None
        self._active_trace_id = None
        return report

    async def _worker(
        self,
        queue: "asyncio.Queue[Optional[SourceDescriptor]]",
        results: Dict[str, Dict[str, Any]],
        session_logger: CrawlSessionLogger,
    ) -> None:
        worker_state: Dict[str, Any] = {}
        while True:
            source = await queue.get()
            try:
                if source is None:
                    return
                stats = await self.process_source(source, worker_state)
                results[source.key] = stats
                session_logger.log_source_processing(
                    source.key, "success" if stats["success"] else "error", stats
                )
            finally:
                queue.task_done()

    async def process_source(
        self, source: SourceDescriptor, worker_state: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Extrae y persiste una fuente; nunca propaga errores de extracción."""
        worker_state = worker_state if worker_state is not None else {}
        started = time.perf_counter()
        stats: Dict[str, Any] = {
            "source_id": source.key,
            "success": False,
            "articles_found": 0,
            "articles_saved": 0,
            "error_message": None,
            "processing_time": 0.0,
        }

        extractor = None
        try:
            source_type = classify(source.declared_type, source.url)
            stats["source_type"] = source_type.value
            extractor = self.factory.create_for_type(source_type)
            extractor.set_runtime_context(
                session_id=self._active_session_id, trace_id=self._active_trace_id
            )

            if source_type is SourceType.RSS:
                await self._enforce_feed_delay(worker_state)
                await self._enforce_domain_rate_limit(source.url)
                records = await extractor.extract_from_feed(source.url)
            elif source_type is SourceType.SOCIAL:
                await self._enforce_feed_delay(worker_state)
                records = await extractor.extract_content(source.url)
            else:
                records = await self._crawl_listing(extractor, source, stats)

            stats["articles_found"] = len(records)
            stats["articles_saved"] = await self._store_records(records, source)
            stats["success"] = True
        except Exception as exc:
            stats["error_message"] = f"{type(exc).__name__}: {exc}"
            self._emit_log(
                "error",
                "crawler.source.failed",
                source_id=source.key,
                source_url=source.url,
                details={"error": str(exc), "error_type": type(exc).__name__},
            )
        finally:
            if extractor is not None:
                await extractor.aclose()
            stats["processing_time"] = round(time.perf_counter() - started, 3)

        self._emit_log(
            "info",
            "crawler.source.completed",
            source_id=source.key,
            source_url=source.url,
            latency=stats["processing_time"],
            details={
                "success": stats["success"],
                "articles_found": stats["articles_found"],
                "articles_saved": stats["articles_saved"],
            },
        )
        return stats

    async def _crawl_listing(
        self, extractor: Any, source: SourceDescriptor, stats: Dict[str, Any]
    ) -> List[ArticleRecord]:
        """
        Recorre una página índice: junta enlaces y extrae cada artículo.

        Si la página no expone enlaces se trata como un artículo suelto.
        Los enlaces ya persistidos se saltan sin descargarlos.
        """
        await self._enforce_domain_rate_limit(source.url)
        links = await extractor.extract_article_links(source.url)
        if not links:
            links = [source.url]

        records: List[ArticleRecord] = []
        stats["article_errors"] = 0
        fetched = 0
        for link in links:
            if await resolve(self.store.exists(link)):
                continue
            if fetched:
                await self._sleep(article_delay())
            fetched += 1
            await self._enforce_domain_rate_limit(link)
            try:
                record = await extractor.extract_content(link)
            except Exception as exc:
                stats["article_errors"] += 1
                self._emit_log(
                    "warning",
                    "crawler.article.failed",
                    source_id=source.key,
                    source_url=link,
                    details={"error": str(exc), "error_type": type(exc).__name__},
                )
                continue
            if record is not None:
                records.append(record)
        return records

    async def _store_records(
        self, records: Iterable[ArticleRecord], source: SourceDescriptor
    ) -> int:
        saved = 0
        for record in records:
            if await resolve(self.store.exists(record.url)):
                continue
            article_id = await resolve(self.store.create(record))
            saved += 1
            self._emit_log(
                "debug",
                "crawler.article.saved",
                source_id=source.key,
                source_url=record.url,
                details={"article_id": article_id},
            )
        return saved

    # Reporte
    # =======

    def _update_global_stats(
        self, source_results: Dict[str, Dict[str, Any]], elapsed: float
    ) -> None:
        self.stats["total_sources_processed"] = len(source_results)
        self.stats["total_articles_found"] = sum(
            result["articles_found"] for result in source_results.values()
        )
        self.stats["total_articles_saved"] = sum(
            result["articles_saved"] for result in source_results.values()
        )
        self.stats["total_errors"] = sum(
            1 for result in source_results.values() if not result["success"]
        )
        self.stats["processing_time_seconds"] = round(elapsed, 3)

    def _generate_crawl_report(
        self, source_results: Dict[str, Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Genera el reporte de la sesión de crawling.

        Resume totales, tasas de éxito y de guardado, las fuentes más
        productivas y las que fallaron con su mensaje de error.
        """
        success_rate = 0.0
        if self.stats["total_sources_processed"] > 0:
            successful_sources = sum(1 for r in source_results.values() if r["success"])
            success_rate = (
                successful_sources / self.stats["total_sources_processed"]
            ) * 100

        save_rate = 0.0
        if self.stats["total_articles_found"] > 0:
            save_rate = (
                self.stats["total_articles_saved"] / self.stats["total_articles_found"]
            ) * 100

        best_sources = sorted(
            [
                (source_id, result)
                for source_id, result in source_results.items()
                if result["success"]
            ],
            key=lambda x: x[1]["articles_saved"],
            reverse=True,
        )[:5]

        return {
            "collection_summary": {
                "crawler_type": self.crawler_type,
                "start_time": self.start_time.isoformat() if self.start_time else None,
                "end_time": datetime.now(timezone.utc).isoformat(),
                "duration_seconds": self.stats["processing_time_seconds"],
                "sources_processed": self.stats["total_sources_processed"],
                "articles_found": self.stats["total_articles_found"],
                "articles_saved": self.stats["total_articles_saved"],
                "errors_encountered": self.stats["total_errors"],
                "success_rate_percent": round(success_rate, 2),
                "save_rate_percent": round(save_rate, 2),
            },
            "source_details": source_results,
            "top_performers": [
                {
                    "source_id": source_id,
                    "articles_saved": result["articles_saved"],
                    "articles_found": result["articles_found"],
                }
                for source_id, result in best_sources
            ],
            "failed_sources": [
                {"source_id": source_id, "error_message": result["error_message"]}
                for source_id, result in source_results.items()
                if not result["success"]
            ],
        }


async def crawl(
    sources: Iterable[SourceInput],
    store: ArticleStore,
    **kwargs: Any,
) -> Dict[str, Any]:
    """Atajo: crea un pipeline, corre el lote y retorna el reporte."""
    session_id = kwargs.pop("session_id", None)
    trace_id = kwargs.pop("trace_id", None)
    pipeline = CrawlPipeline(store, **kwargs)
    return await pipeline.run(sources, session_id=session_id, trace_id=trace_id)


__all__ = ["CrawlPipeline", "crawl"]
