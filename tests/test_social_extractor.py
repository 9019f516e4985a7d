"""Social accounts through proxy-instance fail-over."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from src.contracts.source import NitterInstanceDescriptor
from src.extractors.errors import ConfigurationError, ExtractionError, FetchError
from src.extractors.feed_extractor import FeedExtractor
from src.extractors.social_extractor import (
    SocialExtractor,
    extract_handle,
    instance_feed_url,
    normalize_handle,
)
from src.storage import StaticProxyRegistry

NOW = datetime(2024, 9, 1, tzinfo=timezone.utc)
TWEET_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>@scientist</title>
<item><title>New paper out</title><link>https://nitter.b.example/scientist/status/1</link>
<pubDate>Sat, 31 Aug 2024 09:00:00 GMT</pubDate>
<description>{body}</description></item></channel></rss>""".format(body="Thread text. " * 50)
EMPTY_FEED = '<?xml version="1.0"?><rss version="2.0"><channel><title>x</title></channel></rss>'


@pytest.mark.parametrize(
    "value",
    [
        "scientist",
        "@scientist",
        " @scientist ",
        "https://twitter.com/scientist",
        "https://x.com/scientist/status/123",
        "https://nitter.net/scientist",
    ],
)
def test_normalize_handle(value):
    assert normalize_handle(value) == "scientist"


@pytest.mark.parametrize("value", ["", None, "not a handle!", "https://x.com/"])
def test_invalid_handles_are_configuration_errors(value):
    assert extract_handle(value) is None
    with pytest.raises(ConfigurationError):
        normalize_handle(value)


def test_instance_feed_url():
    assert instance_feed_url("https://nitter.example/", "bob") == "https://nitter.example/bob/rss"


def _social(make_client, logger_factory, recording_sleep, routes, **kwargs):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return routes.get(str(request.url), httpx.Response(404))

    client = make_client(handler)
    feed = FeedExtractor(
        client=client, logger_factory=logger_factory, sleep=recording_sleep, now=lambda: NOW
    )
    extractor = SocialExtractor(
        client=client, logger_factory=logger_factory, feed_extractor=feed, **kwargs
    )
    return extractor, calls


def test_failover_tries_each_instance_once(make_client, logger_factory, recording_sleep):
    registry = StaticProxyRegistry(
        [
            {"url": "https://nitter.a.example", "priority": 10},
            {"url": "https://nitter.b.example", "priority": 5},
        ]
    )
    extractor, calls = _social(
        make_client,
        logger_factory,
        recording_sleep,
        {
            "https://nitter.a.example/scientist/rss": httpx.Response(503),
            "https://nitter.b.example/scientist/rss": httpx.Response(200, text=TWEET_FEED),
        },
        registry=registry,
    )

    articles = asyncio.run(extractor.extract_content("@scientist"))

    assert [article.title for article in articles] == ["New paper out"]
    assert calls == [
        "https://nitter.a.example/scientist/rss",
        "https://nitter.b.example/scientist/rss",
    ]
    assert recording_sleep.calls == []
    failed = logger_factory.logger.events("extractor.social.instance_failed")
    succeeded = logger_factory.logger.events("extractor.social.instance_succeeded")
    assert failed[0]["details"]["instance"] == "https://nitter.a.example"
    assert succeeded[0]["details"]["instance"] == "https://nitter.b.example"


def test_all_instances_failing_raises_last_error(make_client, logger_factory, recording_sleep):
    extractor, calls = _social(
        make_client,
        logger_factory,
        recording_sleep,
        {
            "https://a.example/scientist/rss": httpx.Response(502),
            "https://b.example/scientist/rss": httpx.Response(503),
        },
        social_config={"instances": ["a.example", "b.example"], "default_instances": []},
    )

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(extractor.extract_content("scientist"))

    assert excinfo.value.status_code == 503
    assert len(calls) == 2


def test_empty_instances_fail_the_pass(make_client, logger_factory, recording_sleep):
    extractor, calls = _social(
        make_client,
        logger_factory,
        recording_sleep,
        {
            "https://a.example/scientist/rss": httpx.Response(200, text=EMPTY_FEED),
            "https://b.example/scientist/rss": httpx.Response(200, text=EMPTY_FEED),
        },
        social_config={"instances": ["https://a.example", "https://b.example"], "default_instances": []},
    )

    with pytest.raises(ExtractionError, match="@scientist") as excinfo:
        asyncio.run(extractor.extract_content("scientist"))

    assert not isinstance(excinfo.value, FetchError)
    assert len(calls) == 2
    assert len(logger_factory.logger.events("extractor.social.instance_empty")) == 2


def test_no_instances_is_configuration_error(logger_factory):
    extractor = SocialExtractor(
        logger_factory=logger_factory,
        social_config={"instances": [], "default_instances": []},
    )
    with pytest.raises(ConfigurationError):
        asyncio.run(extractor.extract_content("scientist"))


def test_invalid_handle_fails_before_any_request(make_client, logger_factory, recording_sleep):
    extractor, calls = _social(
        make_client,
        logger_factory,
        recording_sleep,
        {},
        social_config={"instances": ["https://a.example"], "default_instances": []},
    )
    with pytest.raises(ConfigurationError):
        asyncio.run(extractor.extract_content("not a handle!"))
    assert calls == []


def test_instance_resolution_order(logger_factory):
    older = NitterInstanceDescriptor(
        url="https://old.example", priority=1, created_at=datetime(2023, 1, 1, tzinfo=timezone.utc)
    )
    newer = NitterInstanceDescriptor(
        url="https://new.example", priority=1, created_at=datetime(2024, 1, 1, tzinfo=timezone.utc)
    )
    inactive = NitterInstanceDescriptor(url="https://off.example", priority=99, active=False)
    top = NitterInstanceDescriptor(url="https://top.example", priority=5)
    extractor = SocialExtractor(
        logger_factory=logger_factory,
        registry=StaticProxyRegistry([older, newer, inactive, top]),
    )

    assert asyncio.run(extractor.resolve_instances()) == [
        "https://top.example",
        "https://new.example",
        "https://old.example",
    ]


def test_configured_then_default_instances(logger_factory):
    configured = SocialExtractor(
        logger_factory=logger_factory,
        registry=StaticProxyRegistry([]),
        social_config={"instances": ["a.example/", "a.example"], "default_instances": ["d.example"]},
    )
    assert asyncio.run(configured.resolve_instances()) == ["https://a.example"]

    defaults = SocialExtractor(
        logger_factory=logger_factory,
        social_config={"instances": [], "default_instances": ["d.example"]},
    )
    assert asyncio.run(defaults.resolve_instances()) == ["https://d.example"]


def test_registry_failure_falls_back_to_configuration(logger_factory):
    class BrokenRegistry:
        async def get_active(self):
            raise RuntimeError("registry offline")

    extractor = SocialExtractor(
        logger_factory=logger_factory,
        registry=BrokenRegistry(),
        social_config={"instances": ["https://c.example"], "default_instances": []},
    )

    assert asyncio.run(extractor.resolve_instances()) == ["https://c.example"]
    assert logger_factory.logger.events("extractor.social.registry_failed")
