"""Shared fixtures for the crawler test-suite."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Dict

import httpx
import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))


class StubModuleLogger:
    """Captures structured log payloads for assertions."""

    def __init__(self) -> None:
        self.records: list[tuple[str, Dict[str, Any]]] = []

    def info(self, payload: Dict[str, Any]) -> None:
        self.records.append(("info", payload))

    def warning(self, payload: Dict[str, Any]) -> None:
        self.records.append(("warning", payload))

    def error(self, payload: Dict[str, Any]) -> None:
        self.records.append(("error", payload))

    def debug(self, payload: Dict[str, Any]) -> None:
        self.records.append(("debug", payload))

    def events(self, name: str) -> list[Dict[str, Any]]:
        return [payload for _level, payload in self.records if payload.get("event") == name]


class StubLoggerFactory:
    """Hands the same stub logger to every module."""

    def __init__(self) -> None:
        self.logger = StubModuleLogger()

    def create_module_logger(self, module_name: str) -> StubModuleLogger:
        return self.logger


class RecordingSleep:
    """Async sleep replacement that only records the requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def logger_factory() -> StubLoggerFactory:
    return StubLoggerFactory()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are answered by ``handler``."""

    def _build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)

    return _build
