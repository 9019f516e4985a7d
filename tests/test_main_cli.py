"""Command-line entry point: source resolution and exit codes."""

from __future__ import annotations

import asyncio
import json
import signal
from pathlib import Path

import pytest

import main as cli
from src.extractors.browser import BrowserManager


def _args(*argv: str):
    return cli.build_parser().parse_args(list(argv))


def test_urls_take_precedence(tmp_path: Path) -> None:
    sources_file = tmp_path / "sources.json"
    sources_file.write_text("[]", encoding="utf-8")

    args = _args("--url", "https://a.example/feed", "--url", "@someone", "--type", "rss",
                 "--sources", str(sources_file))

    assert cli.resolve_sources(args) == [
        {"url": "https://a.example/feed", "declared_type": "rss"},
        {"url": "@someone", "declared_type": "rss"},
    ]


@pytest.mark.parametrize(
    "payload",
    [
        [{"url": "https://a.example/feed"}],
        {"sources": [{"url": "https://a.example/feed"}]},
    ],
)
def test_load_source_descriptors_formats(tmp_path: Path, payload) -> None:
    sources_file = tmp_path / "sources.json"
    sources_file.write_text(json.dumps(payload), encoding="utf-8")

    assert cli.load_source_descriptors(sources_file) == [{"url": "https://a.example/feed"}]


def test_load_source_descriptors_rejects_other_shapes(tmp_path: Path) -> None:
    sources_file = tmp_path / "sources.json"
    sources_file.write_text('"https://a.example/feed"', encoding="utf-8")

    with pytest.raises(ValueError):
        cli.load_source_descriptors(sources_file)


def test_default_catalog_is_used_without_inputs(monkeypatch) -> None:
    monkeypatch.setattr(cli, "CRAWLER_CONFIG", {"sources_file": None})

    sources = cli.resolve_sources(_args())

    assert sources
    assert all("source_id" in source and "url" in source for source in sources)


def _fake_report(errors: int) -> dict:
    return {
        "collection_summary": {
            "sources_processed": 2,
            "articles_found": 4,
            "articles_saved": 3,
            "errors_encountered": errors,
            "duration_seconds": 1.25,
        },
        "failed_sources": (
            [{"source_id": "broken", "error_message": "FetchError: HTTP 503"}] if errors else []
        ),
    }


@pytest.mark.parametrize("errors, expected", [(0, 0), (1, 2)])
def test_exit_code_reflects_failed_sources(monkeypatch, capsys, errors, expected) -> None:
    async def fake_run_crawl(args):
        return _fake_report(errors)

    monkeypatch.setattr(cli, "setup_logging", lambda config=None: None)
    monkeypatch.setattr(cli, "run_crawl", fake_run_crawl)

    assert cli.main(["--url", "https://a.example/feed"]) == expected
    output = capsys.readouterr().out
    assert "Artículos guardados: 3" in output
    if errors:
        assert "broken: FetchError: HTTP 503" in output


def test_json_output(monkeypatch, capsys) -> None:
    async def fake_run_crawl(args):
        return _fake_report(0)

    monkeypatch.setattr(cli, "setup_logging", lambda config=None: None)
    monkeypatch.setattr(cli, "run_crawl", fake_run_crawl)

    assert cli.main(["--json", "--url", "https://a.example/feed"]) == 0
    assert json.loads(capsys.readouterr().out)["collection_summary"]["articles_saved"] == 3


def test_unreadable_sources_file_exits_with_error(monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.setattr(cli, "setup_logging", lambda config=None: None)

    exit_code = cli.main(["--sources", str(tmp_path / "missing.json")])

    assert exit_code == 1
    assert "Error durante ejecución" in capsys.readouterr().err


def test_invalid_catalog_stops_before_crawling(monkeypatch, capsys) -> None:
    async def fail_run_crawl(args):
        raise AssertionError("the crawl must not start")

    monkeypatch.setattr(cli, "setup_logging", lambda config=None: None)
    monkeypatch.setattr(cli, "validate_sources", lambda: ["broken: URL inválida 'ftp://x'"])
    monkeypatch.setattr(cli, "run_crawl", fail_run_crawl)

    assert cli.main([]) == 1
    assert "Catálogo de fuentes inválido" in capsys.readouterr().err


def test_signal_during_crawl_exits_as_interrupted(monkeypatch, capsys) -> None:
    async def interrupted_run_crawl(args):
        BrowserManager()._on_signal(signal.SIGINT)
        await asyncio.sleep(10)

    monkeypatch.setattr(cli, "setup_logging", lambda config=None: None)
    monkeypatch.setattr(cli, "run_crawl", interrupted_run_crawl)

    assert cli.main(["--url", "https://a.example/feed"]) == 130
    assert "interrumpida" in capsys.readouterr().err


def test_keyboard_interrupt_exits_as_interrupted(monkeypatch) -> None:
    async def interrupted_run_crawl(args):
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "setup_logging", lambda config=None: None)
    monkeypatch.setattr(cli, "run_crawl", interrupted_run_crawl)

    assert cli.main(["--url", "https://a.example/feed"]) == 130
