"""Shared contracts for validated crawler payloads."""

from .article import (
    CONTENT_MIN_LENGTH,
    SUMMARY_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    UNTITLED_MARKER,
    ArticleRecord,
    ArticleRecordPayload,
    build_article_record,
    record_to_dict,
)
from .extraction import ExtractionAttempt, ExtractionOutcome, ExtractionStrategy
from .source import (
    FEED_DECLARED_TYPES,
    DeclaredType,
    NitterInstanceDescriptor,
    SourceDescriptor,
    SourceType,
    normalize_instance_url,
    rank_instances,
)

__all__ = [
    "ArticleRecord",
    "ArticleRecordPayload",
    "CONTENT_MIN_LENGTH",
    "DeclaredType",
    "ExtractionAttempt",
    "ExtractionOutcome",
    "ExtractionStrategy",
    "FEED_DECLARED_TYPES",
    "NitterInstanceDescriptor",
    "SUMMARY_MAX_LENGTH",
    "SourceDescriptor",
    "SourceType",
    "TITLE_MAX_LENGTH",
    "UNTITLED_MARKER",
    "build_article_record",
    "normalize_instance_url",
    "rank_instances",
    "record_to_dict",
]
