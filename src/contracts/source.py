"""Contracts for crawl sources and social proxy instances."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeclaredType(str, Enum):
    """Source type hint supplied by whoever registered the source."""

    RSS = "rss"
    FEED = "feed"
    XML = "xml"
    ATOM = "atom"
    BLOG = "blog"
    NEWS = "news"
    WEBSITE = "website"
    SOCIAL = "social"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: Any) -> "DeclaredType":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        if normalized in {"twitter", "x", "nitter"}:
            return cls.SOCIAL
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN


FEED_DECLARED_TYPES = frozenset(
    {DeclaredType.RSS, DeclaredType.FEED, DeclaredType.XML, DeclaredType.ATOM}
)


class SourceType(str, Enum):
    """Resolved source type used to pick an extractor."""

    SOCIAL = "social"
    RSS = "rss"
    BLOG = "blog"
    NEWS = "news"
    WEBSITE = "website"


class SourceDescriptor(BaseModel):
    """Immutable input to source classification."""

    declared_type: DeclaredType = DeclaredType.UNKNOWN
    url: str = Field(min_length=1)
    source_id: Optional[str] = None
    name: Optional[str] = None

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator("declared_type", mode="before")
    @classmethod
    def coerce_declared_type(cls, value: Any) -> DeclaredType:
        return DeclaredType.coerce(value)

    @property
    def key(self) -> str:
        return self.source_id or self.url


def normalize_instance_url(url: str) -> str:
    """``nitter.net/`` -> ``https://nitter.net``."""
    cleaned = (url or "").strip()
    if not cleaned:
        return cleaned
    if not cleaned.startswith(("http://", "https://")):
        cleaned = f"https://{cleaned}"
    return cleaned.rstrip("/")


class NitterInstanceDescriptor(BaseModel):
    """Proxy instance entry owned by the external instance registry."""

    url: str = Field(min_length=1)
    priority: int = 0
    active: bool = True
    created_at: datetime = Field(
        default_factory=lambda: datetime.fromtimestamp(0, tz=timezone.utc)
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, value: Any) -> str:
        return normalize_instance_url(str(value or ""))

    @field_validator("created_at", mode="before")
    @classmethod
    def ensure_utc(cls, value: Any) -> Any:
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def rank_instances(
    instances: Iterable[NitterInstanceDescriptor],
) -> List[NitterInstanceDescriptor]:
    """Active instances ordered by priority, then most recently added first."""
    active = [instance for instance in instances if instance.active]
    return sorted(
        active,
        key=lambda instance: (instance.priority, instance.created_at),
        reverse=True,
    )
