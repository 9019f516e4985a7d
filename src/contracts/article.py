"""Contracts for extracted article records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, TypedDict

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.utils.text_cleaner import plain_text_length, summarize, truncate_text

TITLE_MAX_LENGTH = 500
SUMMARY_MAX_LENGTH = 300
CONTENT_MIN_LENGTH = 100
CONTENT_MAX_LENGTH = 50_000
UNTITLED_MARKER = "Untitled"


class ArticleRecordPayload(TypedDict, total=False):
    """Serialized representation of an article handed to persistence."""

    title: str
    content: str
    summary: str
    url: str
    image_url: Optional[str]
    publish_date: datetime


class ArticleRecord(BaseModel):
    """Canonical article produced by every extraction strategy."""

    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    content: str = Field(min_length=CONTENT_MIN_LENGTH, max_length=CONTENT_MAX_LENGTH)
    summary: str = Field(default="", max_length=SUMMARY_MAX_LENGTH)
    url: str = Field(min_length=1)
    image_url: Optional[str] = None
    publish_date: datetime

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator("publish_date", mode="before")
    @classmethod
    def ensure_utc(cls, value: Any) -> datetime:
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc)
        raise ValueError("publish_date must be a datetime instance")

    @field_validator("image_url", mode="before")
    @classmethod
    def blank_image_is_none(cls, value: Any) -> Optional[str]:
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    def model_dump_for_storage(self) -> ArticleRecordPayload:
        """Return a dict ready for the persistence collaborator."""
        return ArticleRecordPayload(**self.model_dump(mode="python"))


def build_article_record(
    *,
    title: Optional[str],
    content: Optional[str],
    url: str,
    summary: Optional[str] = None,
    image_url: Optional[str] = None,
    publish_date: Optional[datetime] = None,
) -> Optional[ArticleRecord]:
    """Clamp fields to their limits and build a record.

    Returns None when the title is missing, or when the content is empty or
    has fewer than ``CONTENT_MIN_LENGTH`` visible characters.
    """
    title = (title or "").strip()
    content = (content or "").strip()
    if not title or not content or not url:
        return None
    if plain_text_length(content) < CONTENT_MIN_LENGTH:
        return None

    try:
        return ArticleRecord(
            title=truncate_text(title, TITLE_MAX_LENGTH),
            content=truncate_text(content, CONTENT_MAX_LENGTH),
            summary=summarize(summary if summary else content, SUMMARY_MAX_LENGTH),
            url=url,
            image_url=image_url,
            publish_date=publish_date or datetime.now(timezone.utc),
        )
    except ValidationError:
        return None


def record_to_dict(record: ArticleRecord) -> Dict[str, Any]:
    return record.model_dump(mode="json")
