"""Utilities for harmonizing per-domain spacing and inter-request delays."""

from __future__ import annotations

import random
from typing import Dict, Optional

from config.settings import RATE_LIMITING_CONFIG


def _normalize_domain(domain: str) -> str:
    """Return a lowercase domain without port information."""
    if not domain:
        return ""
    return domain.split(":", 1)[0].lower()


def _candidate_domains(domain: str) -> list[str]:
    normalized = _normalize_domain(domain)
    if not normalized:
        return []
    candidates = [normalized]
    if normalized.startswith("www."):
        candidates.append(normalized[4:])
    else:
        candidates.append(f"www.{normalized}")
    return candidates


def resolve_domain_override(
    domain: str, overrides: Optional[Dict[str, float]] = None
) -> float:
    """Return the configured minimum delay (seconds) for a domain, if any."""

    config_overrides = (
        overrides
        if overrides is not None
        else RATE_LIMITING_CONFIG.get("domain_overrides", {})
    )
    if not config_overrides:
        return 0.0

    for candidate in _candidate_domains(domain):
        if candidate in config_overrides:
            return float(config_overrides[candidate])
    return 0.0


def calculate_effective_delay(
    domain: str, overrides: Optional[Dict[str, float]] = None
) -> float:
    """Spacing between two requests to ``domain``: the default or its override."""

    base_delay = float(RATE_LIMITING_CONFIG["domain_default_delay"])
    return max(base_delay, resolve_domain_override(domain, overrides))


def article_delay() -> float:
    """Random pause between article fetches of one listing page."""

    return random.uniform(
        RATE_LIMITING_CONFIG["article_delay_min_seconds"],
        RATE_LIMITING_CONFIG["article_delay_max_seconds"],
    )


def feed_delay() -> float:
    return float(RATE_LIMITING_CONFIG["feed_delay_seconds"])
