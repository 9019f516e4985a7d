"""Validation rules of article records, sources and proxy instances."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from src.contracts import (
    CONTENT_MIN_LENGTH,
    SUMMARY_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    ArticleRecord,
    DeclaredType,
    NitterInstanceDescriptor,
    SourceDescriptor,
    build_article_record,
    normalize_instance_url,
    rank_instances,
    record_to_dict,
)

URL = "https://example.com/posts/1"
BODY = "Readable paragraph text. " * 10


def test_fields_are_clamped_to_limits() -> None:
    record = build_article_record(
        title="T" * 900,
        content="x" * 60_000,
        url=URL,
        summary="s " * 400,
    )

    assert record is not None
    assert len(record.title) == TITLE_MAX_LENGTH
    assert len(record.content) == 50_000
    assert len(record.summary) <= SUMMARY_MAX_LENGTH


def test_summary_defaults_to_plain_text_of_content() -> None:
    record = build_article_record(title="Title", content=f"<p>{BODY}</p>", url=URL)

    assert record is not None
    assert "<p>" not in record.summary
    assert record.summary.startswith("Readable paragraph text.")


def test_content_minimum_counts_visible_characters() -> None:
    markup = "<div>" + "<span></span>" * 30 + "short</div>"
    assert len(markup) > CONTENT_MIN_LENGTH

    assert build_article_record(title="Title", content=markup, url=URL) is None
    assert build_article_record(title="Title", content="y" * CONTENT_MIN_LENGTH, url=URL) is not None


@pytest.mark.parametrize(
    "title, content",
    [(None, BODY), ("   ", BODY), ("Title", None), ("Title", "")],
)
def test_missing_fields_yield_no_record(title, content) -> None:
    assert build_article_record(title=title, content=content, url=URL) is None


def test_publish_date_is_normalized_to_utc() -> None:
    local = datetime(2024, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    naive = datetime(2024, 5, 1, 12, 0)

    aware_record = build_article_record(title="A", content=BODY, url=URL, publish_date=local)
    naive_record = build_article_record(title="B", content=BODY, url=URL, publish_date=naive)

    assert aware_record.publish_date == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert naive_record.publish_date.tzinfo == timezone.utc


def test_missing_publish_date_defaults_to_now() -> None:
    before = datetime.now(timezone.utc)
    record = build_article_record(title="A", content=BODY, url=URL)
    assert record.publish_date >= before


def test_blank_image_becomes_none_and_record_is_frozen() -> None:
    record = build_article_record(title="A", content=BODY, url=URL, image_url="  ")

    assert record.image_url is None
    with pytest.raises(ValidationError):
        record.title = "changed"


def test_record_rejects_non_datetime_publish_date() -> None:
    with pytest.raises(ValidationError):
        ArticleRecord(title="A", content=BODY, url=URL, publish_date="2024-05-01")


def test_record_serializes_for_storage() -> None:
    record = build_article_record(title="A", content=BODY, url=URL)

    payload = record.model_dump_for_storage()
    as_json = record_to_dict(record)

    assert payload["url"] == URL
    assert isinstance(payload["publish_date"], datetime)
    assert isinstance(as_json["publish_date"], str)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("RSS", DeclaredType.RSS),
        ("  Atom ", DeclaredType.ATOM),
        ("twitter", DeclaredType.SOCIAL),
        ("nitter", DeclaredType.SOCIAL),
        ("podcast", DeclaredType.UNKNOWN),
        (None, DeclaredType.UNKNOWN),
    ],
)
def test_declared_type_coercion(raw, expected) -> None:
    assert DeclaredType.coerce(raw) is expected


def test_source_descriptor_key_and_validation() -> None:
    with_id = SourceDescriptor(url="https://example.com/feed", source_id="example", declared_type="rss")
    without_id = SourceDescriptor(url="  https://example.com/feed  ")

    assert with_id.key == "example"
    assert without_id.key == "https://example.com/feed"
    assert without_id.declared_type is DeclaredType.UNKNOWN
    with pytest.raises(ValidationError):
        SourceDescriptor(url="")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("nitter.net/", "https://nitter.net"),
        ("http://nitter.local", "http://nitter.local"),
        ("https://nitter.it//", "https://nitter.it"),
        ("  ", ""),
    ],
)
def test_normalize_instance_url(raw, expected) -> None:
    assert normalize_instance_url(raw) == expected


def test_rank_instances_orders_by_priority_then_recency() -> None:
    older = datetime(2024, 1, 1, tzinfo=timezone.utc)
    newer = datetime(2024, 6, 1, tzinfo=timezone.utc)
    instances = [
        NitterInstanceDescriptor(url="low.example", priority=1, created_at=newer),
        NitterInstanceDescriptor(url="high-old.example", priority=5, created_at=older),
        NitterInstanceDescriptor(url="high-new.example", priority=5, created_at=newer),
        NitterInstanceDescriptor(url="inactive.example", priority=9, active=False),
    ]

    ranked = [instance.url for instance in rank_instances(instances)]

    assert ranked == [
        "https://high-new.example",
        "https://high-old.example",
        "https://low.example",
    ]


def test_instance_naive_created_at_is_utc() -> None:
    instance = NitterInstanceDescriptor(url="nitter.net", created_at=datetime(2024, 1, 1))
    assert instance.created_at.tzinfo == timezone.utc
