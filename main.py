# main.py
# Punto de entrada del crawler
# ============================

"""
Ejecuta una corrida de crawling desde la línea de comandos.

Las fuentes salen, en este orden, de ``--url``, de ``--sources`` (archivo
JSON con una lista de descriptores), de ``crawler.sources_file`` en la
configuración o del catálogo por defecto en ``config/sources.py``.

Los artículos se guardan en un almacén en memoria; el reporte final se
imprime como resumen legible o como JSON con ``--json``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from config import (
    CRAWLER_CONFIG,
    LOGGING_CONFIG,
    PROJECT_VERSION,
    get_default_source_descriptors,
    validate_config,
    validate_sources,
)
from newsharvest.config_manager import ConfigError
from src.crawler import CrawlPipeline
from src.extractors import ExtractorFactory, get_browser_manager, shutdown_browser_manager
from src.storage import MemoryArticleStore, StaticProxyRegistry
from src.utils.logger import get_logger, setup_logging


def load_source_descriptors(path: Path) -> List[Dict[str, Any]]:
    """Lee un archivo JSON con una lista de descriptores (o ``{"sources": [...]}``)."""
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, dict):
        data = data.get("sources", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: se esperaba una lista de fuentes")
    return data


def resolve_sources(args: argparse.Namespace) -> List[Dict[str, Any]]:
    if args.url:
        return [{"url": url, "declared_type": args.type} for url in args.url]
    sources_file = args.sources or CRAWLER_CONFIG.get("sources_file")
    if sources_file:
        return load_source_descriptors(Path(sources_file))
    return get_default_source_descriptors()


def validate_configuration() -> None:
    """Valida la configuración y el catálogo de fuentes antes de crawlear."""
    validate_config()
    problems = validate_sources()
    if problems:
        raise ValueError("Catálogo de fuentes inválido: " + "; ".join(problems))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="NewsHarvest crawler")
    parser.add_argument("--sources", help="Archivo JSON con descriptores de fuentes")
    parser.add_argument(
        "--url", action="append", help="URL a procesar (se puede repetir)"
    )
    parser.add_argument(
        "--type", default="unknown", help="Tipo declarado para las URLs de --url"
    )
    parser.add_argument("--workers", type=int, help="Número de workers concurrentes")
    parser.add_argument(
        "--instance",
        action="append",
        default=[],
        help="Instancia de proxy social a usar (se puede repetir)",
    )
    parser.add_argument(
        "--no-render", action="store_true", help="Desactiva el render con navegador"
    )
    parser.add_argument("--json", action="store_true", help="Imprime el reporte en JSON")
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {PROJECT_VERSION}"
    )
    return parser


async def run_crawl(args: argparse.Namespace) -> Dict[str, Any]:
    sources = resolve_sources(args)
    get_logger().log_system_startup(
        version=PROJECT_VERSION,
        config_summary={
            "sources_configured": len(sources),
            "workers": args.workers or CRAWLER_CONFIG["workers"],
            "render_disabled": args.no_render,
        },
    )
    browser_manager = get_browser_manager()
    browser_manager.install_shutdown_hooks()
    factory = ExtractorFactory(
        registry=StaticProxyRegistry(args.instance) if args.instance else None,
        browser_manager=browser_manager,
        render_enabled=False if args.no_render else None,
    )
    pipeline = CrawlPipeline(MemoryArticleStore(), factory=factory, workers=args.workers)
    try:
        return await pipeline.run(sources)
    finally:
        await factory.aclose()
        await shutdown_browser_manager()


def print_report(report: Dict[str, Any]) -> None:
    summary = report["collection_summary"]
    print("\nRESUMEN DE LA CORRIDA:")
    print(f"  - Fuentes procesadas: {summary['sources_processed']}")
    print(f"  - Artículos encontrados: {summary['articles_found']}")
    print(f"  - Artículos guardados: {summary['articles_saved']}")
    print(f"  - Errores: {summary['errors_encountered']}")
    print(f"  - Duración: {summary['duration_seconds']:.1f}s")
    for failed in report["failed_sources"]:
        print(f"  ! {failed['source_id']}: {failed['error_message']}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Función principal para ejecución desde línea de comandos."""
    args = build_parser().parse_args(argv)
    setup_logging(LOGGING_CONFIG)

    try:
        validate_configuration()
        report = asyncio.run(run_crawl(args))
    except (KeyboardInterrupt, asyncio.CancelledError):
        # the browser signal hook cancels the running tasks on SIGINT/SIGTERM
        print("\nEjecución interrumpida por usuario", file=sys.stderr)
        return 130
    except (ConfigError, OSError, ValueError) as exc:
        print(f"Error durante ejecución: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(report, indent=2, ensure_ascii=False, default=str))
    else:
        print_report(report)
    return 0 if report["collection_summary"]["errors_encountered"] == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
