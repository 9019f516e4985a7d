# src/utils/logger.py
# Sistema de logging para el crawler
# ==================================

"""
Este módulo configura el logging del crawler sobre loguru. Todos los
extractores y el pipeline de crawling obtienen aquí un logger con contexto
de módulo, y emiten payloads estructurados (diccionarios con un nombre de
evento) que luego se pueden filtrar y analizar.
"""

import sys
import time
from functools import wraps
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from config.settings import DEBUG, LOGGING_CONFIG


class CrawlerLogger:
    """
    Configurador centralizado de logging para el crawler.

    Instala un sink de consola (detallado en modo debug) y un sink de archivo
    con rotación, y entrega loggers con contexto de módulo.
    """

    def __init__(self):
        self.is_configured = False
        self.log_file_path: Optional[Path] = None

    def configure_logging(self, config: Optional[Dict[str, Any]] = None):
        """
        Configura el sistema de logging según la configuración proporcionada.

        Args:
            config: Configuración de logging. Si no se proporciona,
                   usa LOGGING_CONFIG de config.settings
        """
        if self.is_configured:
            logger.debug("Logger ya configurado, omitiendo reconfiguración")
            return

        config = config or LOGGING_CONFIG

        logger.remove()
        self._configure_console_handler(config)
        if config.get("file_path"):
            self._configure_file_handler(config)

        self.is_configured = True
        logger.debug(f"Configuración de logging aplicada: {config}")

    def _configure_console_handler(self, config: Dict[str, Any]):
        """Handler de consola: colorido en desarrollo, compacto en producción."""
        if DEBUG:
            console_format = (
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{extra[module]}</cyan> | "
                "<level>{message}</level>"
            )
            console_level = "DEBUG"
        else:
            console_format = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
            console_level = config.get("level", "INFO")

        logger.configure(extra={"module": "crawler"})
        logger.add(
            sys.stderr,
            format=console_format,
            level=console_level,
            colorize=True,
            backtrace=DEBUG,
            diagnose=DEBUG,
            filter=self._filter_noisy_libraries,
        )

    def _configure_file_handler(self, config: Dict[str, Any]):
        """
        Handler de archivo con rotación, retención y compresión.

        El formato incluye proceso y módulo para poder correlacionar
        eventos de distintos workers.
        """
        self.log_file_path = Path(config["file_path"])
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)

        file_format = (
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{process.id: <6} | "
            "{extra[module]} | "
            "{message}"
        )

        logger.add(
            str(self.log_file_path),
            format=file_format,
            level=config.get("level", "INFO"),
            rotation=config.get("max_file_size", "10 MB"),
            retention=config.get("retention", "30 days"),
            compression="gz",
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )

    @staticmethod
    def _filter_noisy_libraries(record) -> bool:
        # httpx y playwright son muy verbosos en DEBUG
        if record["level"].name == "DEBUG" and not DEBUG:
            return not any(
                noisy in record["name"] for noisy in ("httpx", "httpcore", "playwright")
            )
        return True

    def create_module_logger(self, module_name: str) -> Any:
        """
        Crea un logger específico para un módulo.

        Args:
            module_name: Nombre del módulo (ej: 'extractors.feed')

        Returns:
            Logger de loguru con el contexto del módulo enlazado
        """
        if not self.is_configured:
            self.configure_logging()
        return logger.bind(module=module_name)

    def log_system_startup(
        self, version: str = "0.0.0", config_summary: Optional[Dict[str, Any]] = None
    ):
        """Registra un bloque de inicio con versión y configuración principal."""
        logger.info("=" * 60)
        logger.info("NEWSHARVEST CRAWLER INICIADO")
        logger.info("=" * 60)
        logger.info(f"Versión: {version}")
        logger.info(f"Modo debug: {DEBUG}")

        if config_summary:
            logger.info("Configuración principal:")
            for key, value in config_summary.items():
                logger.info(f"  {key}: {value}")

        if self.log_file_path:
            logger.info(f"Logs guardándose en: {self.log_file_path}")
        logger.info("=" * 60)


class CrawlSessionLogger:
    """
    Logger especializado para sesiones de crawling.

    Lleva el identificador de sesión en cada registro para seguir el
    progreso de una corrida completa.
    """

    def __init__(self, session_id: str, crawler_type: str = "pipeline"):
        self.session_id = session_id
        self.crawler_type = crawler_type
        self.logger = logger.bind(
            module="crawler.session", session_id=session_id, crawler_type=crawler_type
        )

    def log_session_start(self, sources_count: int):
        """Registra el inicio de una sesión de crawling."""
        self.logger.info(f"Sesión {self.session_id}: {sources_count} fuentes programadas")

    def log_source_processing(
        self, source_id: str, status: str, stats: Optional[Dict[str, Any]] = None
    ):
        """Registra el resultado de una fuente específica."""
        if status == "success":
            articles_info = (
                f"{stats.get('articles_saved', 0)}/{stats.get('articles_found', 0)} artículos"
                if stats
                else ""
            )
            self.logger.info(f"OK {source_id}: {articles_info}")
        elif status == "error":
            error_msg = (
                stats.get("error_message", "Error desconocido")
                if stats
                else "Error desconocido"
            )
            self.logger.warning(f"FALLO {source_id}: {error_msg}")
        else:
            self.logger.info(f"{source_id}: {status}")

    def log_session_summary(self, summary: Dict[str, Any]):
        """Registra el resumen final de la sesión."""
        self.logger.info("RESUMEN DE SESIÓN:")
        self.logger.info(f"  - Fuentes procesadas: {summary.get('sources_processed', 0)}")
        self.logger.info(f"  - Artículos encontrados: {summary.get('articles_found', 0)}")
        self.logger.info(f"  - Artículos guardados: {summary.get('articles_saved', 0)}")
        self.logger.info(f"  - Tiempo total: {summary.get('duration_seconds', 0):.1f}s")
        self.logger.info(f"  - Tasa de éxito: {summary.get('success_rate_percent', 0):.1f}%")


# Instancia global del configurador de logging
# ============================================
_logger_instance: Optional[CrawlerLogger] = None


def get_logger() -> CrawlerLogger:
    """
    Retorna el configurador de logging del proceso.

    Singleton para asegurar una configuración consistente en todo el crawler.
    """
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = CrawlerLogger()
        _logger_instance.configure_logging()
    return _logger_instance


def setup_logging(config: Optional[Dict[str, Any]] = None) -> CrawlerLogger:
    """
    Configura logging al inicio del proceso.

    Args:
        config: Configuración opcional de logging

    Returns:
        Instancia configurada del logger
    """
    global _logger_instance
    if config and _logger_instance is not None:
        _logger_instance.is_configured = False
        _logger_instance.configure_logging(config)
        return _logger_instance
    if config:
        _logger_instance = CrawlerLogger()
        _logger_instance.configure_logging(config)
        return _logger_instance
    return get_logger()


def log_async_timing(logger_instance=None):
    """
    Decorador que registra la duración de una corrutina.

    Útil para medir fetches y renders sin ensuciar la lógica del extractor.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            func_logger = logger_instance or logger
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                duration = time.perf_counter() - start_time
                func_logger.debug(f"{func.__qualname__} falló tras {duration:.3f}s: {e}")
                raise
            duration = time.perf_counter() - start_time
            func_logger.debug(f"{func.__qualname__} completada en {duration:.3f}s")
            return result

        return wrapper

    return decorator
