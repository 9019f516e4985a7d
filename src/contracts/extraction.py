"""Ephemeral records describing extraction attempts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ExtractionStrategy(str, Enum):
    STATIC_HTML = "static_html"
    HEADLESS_RENDER = "headless_render"


class ExtractionOutcome(str, Enum):
    SUCCESS = "success"
    CONTENT_TOO_THIN = "content_too_thin"
    FETCH_ERROR = "fetch_error"
    PARSE_ERROR = "parse_error"


@dataclass(frozen=True)
class ExtractionAttempt:
    """One strategy run against one URL; drives escalation, never persisted."""

    source_url: str
    strategy: ExtractionStrategy
    outcome: ExtractionOutcome
    elapsed: float
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is ExtractionOutcome.SUCCESS
