"""Blog and news static extraction, including render escalation."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import pytest

from src.contracts.article import ArticleRecord, build_article_record
from src.contracts.extraction import ExtractionOutcome
from src.extractors.blog_extractor import BlogExtractor
from src.extractors.errors import ExtractionError, FetchError
from src.extractors.news_extractor import NewsWebsiteExtractor

URL = "https://blog.example.com/posts/hello"
BLOG_PAGE = """<html><head><title>Hello world | Example</title>
<meta property="og:image" content="/og.png"></head>
<body><nav>Home About</nav>
<article><h1>Hello world, a long title</h1>
<time datetime="2024-06-01T08:00:00Z">June 1</time>
<p>{body}</p><div class="social-share">Share me</div></article>
<footer>Copyright</footer></body></html>""".format(body="Static paragraph text. " * 40)

NEWS_PAGE = """<html><head><title>Breaking</title></head><body>
<div class="trending">Trending now</div>
<h1 class="headline">Breaking: markets rally today</h1>
<div class="article-body"><p>{body}</p></div>
</body></html>""".format(body="News paragraph text. " * 40)

SPA_PAGE = (
    '<html><body><div id="__next"></div><script id="__NEXT_DATA__">{}</script>'
    + "<!-- padding -->" * 10
    + "</body></html>"
)


class FakeRenderExtractor:
    def __init__(self, result: Optional[ArticleRecord] = None, error: Optional[BaseException] = None):
        self.result = result
        self.error = error
        self.calls: list[str] = []

    async def extract_content(self, url: str, options: Any = None) -> Optional[ArticleRecord]:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.result


def _client(make_client, html: str, status: int = 200):
    return make_client(lambda request: httpx.Response(status, text=html))


def test_blog_extraction_static_path(make_client, logger_factory):
    extractor = BlogExtractor(
        client=_client(make_client, BLOG_PAGE), logger_factory=logger_factory, render_enabled=False
    )

    record = asyncio.run(extractor.extract_content(URL))

    assert record is not None
    assert record.title == "Hello world, a long title"
    assert "Static paragraph text." in record.content
    assert "Share me" not in record.content
    assert "Home About" not in record.content
    assert record.image_url == "https://blog.example.com/og.png"
    assert record.publish_date == datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)
    assert extractor.attempts[-1].outcome is ExtractionOutcome.SUCCESS
    assert extractor.stats["articles_extracted"] == 1


def test_news_extraction_uses_news_selectors(make_client, logger_factory):
    extractor = NewsWebsiteExtractor(
        client=_client(make_client, NEWS_PAGE), logger_factory=logger_factory, render_enabled=False
    )

    record = asyncio.run(extractor.extract_content("https://news.example.com/news/rally"))

    assert record is not None
    assert record.title == "Breaking: markets rally today"
    assert "News paragraph text." in record.content
    assert "Trending now" not in record.content


def test_body_fallback_for_unstructured_page(make_client, logger_factory):
    page = "<html><head><title>Plain page</title></head><body><div>" + "z" * 600 + "</div></body></html>"
    extractor = BlogExtractor(
        client=_client(make_client, page), logger_factory=logger_factory, render_enabled=False
    )

    record = asyncio.run(extractor.extract_content(URL))

    assert record is not None
    assert record.title == "Plain page"
    assert record.content == "z" * 600


def test_thin_page_is_discarded(make_client, logger_factory):
    page = "<html><head><title>Stub</title></head><body><p>Too short to keep.</p></body></html>"
    extractor = BlogExtractor(
        client=_client(make_client, page), logger_factory=logger_factory, render_enabled=False
    )

    assert asyncio.run(extractor.extract_content(URL)) is None
    assert extractor.stats["articles_discarded"] == 1
    assert extractor.attempts[-1].outcome is ExtractionOutcome.CONTENT_TOO_THIN


def test_empty_url_is_rejected(logger_factory):
    extractor = BlogExtractor(logger_factory=logger_factory, render_enabled=False)
    with pytest.raises(ExtractionError):
        asyncio.run(extractor.extract_content(""))


def test_fetch_failure_is_recorded_and_raised(make_client, logger_factory):
    extractor = BlogExtractor(
        client=_client(make_client, "", status=503), logger_factory=logger_factory, render_enabled=False
    )

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(extractor.extract_content(URL))

    assert excinfo.value.retryable
    assert extractor.attempts[-1].outcome is ExtractionOutcome.FETCH_ERROR
    assert extractor.stats["fetch_errors"] == 1
    assert logger_factory.logger.events("extractor.fetch.failed")


def test_script_shell_escalates_to_render(make_client, logger_factory):
    rendered = build_article_record(
        title="Rendered", content="x " * 200, url=URL
    )
    render = FakeRenderExtractor(result=rendered)
    extractor = BlogExtractor(
        client=_client(make_client, SPA_PAGE),
        logger_factory=logger_factory,
        render_extractor=render,
        render_enabled=True,
    )

    record = asyncio.run(extractor.extract_content(URL))

    assert record is rendered
    assert render.calls == [URL]
    assert logger_factory.logger.events("extractor.render.required")


def test_render_returning_nothing_is_final(make_client, logger_factory):
    render = FakeRenderExtractor(result=None)
    extractor = BlogExtractor(
        client=_client(make_client, SPA_PAGE),
        logger_factory=logger_factory,
        render_extractor=render,
        render_enabled=True,
    )

    assert asyncio.run(extractor.extract_content(URL)) is None
    assert render.calls == [URL]


def test_render_failure_degrades_to_static(make_client, logger_factory):
    page = BLOG_PAGE.replace("<body>", '<body><noscript>Enable JavaScript</noscript>')
    render = FakeRenderExtractor(error=RuntimeError("chromium missing"))
    extractor = BlogExtractor(
        client=_client(make_client, page),
        logger_factory=logger_factory,
        render_extractor=render,
        render_enabled=True,
    )

    record = asyncio.run(extractor.extract_content(URL))

    assert record is not None
    assert "Static paragraph text." in record.content
    assert logger_factory.logger.events("extractor.render.degraded")


def test_render_disabled_never_launches_browser(make_client, logger_factory):
    render = FakeRenderExtractor(result=None)
    extractor = BlogExtractor(
        client=_client(make_client, SPA_PAGE),
        logger_factory=logger_factory,
        render_extractor=render,
        render_enabled=False,
    )

    asyncio.run(extractor.extract_content(URL))

    assert render.calls == []


def test_article_links_from_listing(make_client, logger_factory):
    listing = """<html><body>
    <article><h2><a href="/posts/one">One</a></h2></article>
    <article><h2><a href="/posts/two">Two</a></h2></article>
    <a href="/about">About</a>
    </body></html>"""
    extractor = BlogExtractor(
        client=_client(make_client, listing), logger_factory=logger_factory, render_enabled=False
    )

    links = asyncio.run(extractor.extract_article_links("https://blog.example.com/"))

    assert links == [
        "https://blog.example.com/posts/one",
        "https://blog.example.com/posts/two",
    ]
    assert asyncio.run(
        extractor.extract_article_links("https://blog.example.com/", max_links=1)
    ) == ["https://blog.example.com/posts/one"]
