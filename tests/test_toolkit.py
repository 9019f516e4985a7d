"""Tests for the HTML extraction toolkit."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.contracts.article import UNTITLED_MARKER
from src.extractors import toolkit
from src.extractors.selectors import BLOG_PROFILE, NEWS_PROFILE

BASE_URL = "https://example.com/blog/post"
LONG_TEXT = "word " * 150


def _soup(body: str, head: str = ""):
    return toolkit.parse_html(f"<html><head>{head}</head><body>{body}</body></html>")


@pytest.mark.parametrize(
    ("reference", "expected"),
    [
        ("/img/a.png", "https://example.com/img/a.png"),
        ("../a.png", "https://example.com/a.png"),
        ("//cdn.example.net/b.png", "https://cdn.example.net/b.png"),
        ("https://other.org/c.png", "https://other.org/c.png"),
        ("data:image/png;base64,AAAA", "data:image/png;base64,AAAA"),
        ("javascript:alert(1)", None),
        ("   ", None),
        (None, None),
    ],
)
def test_resolve_url(reference, expected):
    assert toolkit.resolve_url(BASE_URL, reference) == expected


def test_title_prefers_selector_cascade():
    soup = _soup(f"<article><h1>A proper article headline</h1><p>{LONG_TEXT}</p></article>")
    assert toolkit.extract_title(soup, BASE_URL) == "A proper article headline"


def test_title_falls_back_to_page_title_before_separator():
    soup = _soup("<h1>Hi</h1>", head="<title>My Great Post | Example Blog</title>")
    assert toolkit.extract_title(soup, BASE_URL) == "My Great Post"


def test_title_untitled_marker_when_nothing_found():
    assert toolkit.extract_title(_soup("<p>no heading</p>"), BASE_URL) == UNTITLED_MARKER


def test_content_selector_wins_and_is_sanitized():
    soup = _soup(
        "<article>"
        f"<p>{LONG_TEXT}</p>"
        "<nav>menu links</nav>"
        '<img data-src="/img/a.png">'
        '<a href="javascript:alert(1)" onclick="steal()">bad link</a>'
        "<!-- hidden note -->"
        "</article>"
    )
    extraction = toolkit.extract_content(soup, BASE_URL, BLOG_PROFILE)

    assert extraction.source == "article"
    assert not extraction.is_body_fallback
    assert "<p>" in extraction.content
    assert "menu links" not in extraction.content
    assert 'src="https://example.com/img/a.png"' in extraction.content
    assert "data-src" not in extraction.content
    assert "onclick" not in extraction.content
    assert "javascript:" not in extraction.content
    assert "hidden note" not in extraction.content
    assert extraction.text_length > toolkit.CONTENT_ACCEPT_LENGTH


def test_content_falls_back_to_body_text():
    soup = _soup(f'<div class="x"><p>{"a" * 600}</p></div><footer>site footer</footer>')
    extraction = toolkit.extract_content(soup, BASE_URL, BLOG_PROFILE)

    assert extraction.is_body_fallback
    assert extraction.content == "a" * 600
    assert "<p>" not in extraction.content
    assert extraction.text_length == 600


def test_short_selector_match_is_skipped():
    soup = _soup('<article><p>short</p></article><div class="x">' + "b" * 700 + "</div>")
    extraction = toolkit.extract_content(soup, BASE_URL, BLOG_PROFILE)
    assert extraction.is_body_fallback
    assert "b" * 700 in extraction.text


def test_sanitize_fragment_leaves_page_untouched():
    soup = _soup(f"<article><p>{LONG_TEXT}</p><nav>menu</nav></article>")
    toolkit.sanitize_fragment(soup.article, BASE_URL)
    assert soup.find("nav") is not None


def test_body_text_is_capped():
    soup = _soup("<p>" + "c" * (toolkit.MAX_TEXT_CONTENT + 500) + "</p>")
    assert len(toolkit.extract_body_text(soup, BASE_URL)) == toolkit.MAX_TEXT_CONTENT


def test_publish_date_from_time_element():
    soup = _soup('<time datetime="2024-05-01T10:00:00+02:00">May 1</time>')
    assert toolkit.extract_publish_date(soup) == datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


def test_publish_date_defaults_to_now():
    before = datetime.now(timezone.utc)
    parsed = toolkit.extract_publish_date(_soup("<p>undated</p>"))
    assert parsed >= before


def test_image_from_content_then_meta():
    soup = _soup('<article><img src="/hero.jpg"></article>')
    assert toolkit.extract_image(soup, BASE_URL) == "https://example.com/hero.jpg"

    soup = _soup("<p>text</p>", head='<meta property="og:image" content="/og.png">')
    assert toolkit.extract_image(soup, BASE_URL) == "https://example.com/og.png"

    assert toolkit.extract_image(_soup("<p>text</p>"), BASE_URL) is None


def test_collect_article_links_filters_and_dedupes():
    soup = _soup(
        '<article><a href="/blog/first-post#comments">First</a></article>'
        '<article><a href="/blog/first-post">First again</a></article>'
        '<h2><a href="https://example.com/post/second">Second</a></h2>'
        '<a href="mailto:someone@example.com">mail</a>'
        '<a href="/about">About</a>'
        '<h3><a href="/2024/05/third">Third</a></h3>'
    )
    links = toolkit.collect_article_links(soup, "https://example.com/blog/", BLOG_PROFILE, 20)
    assert links == [
        "https://example.com/blog/first-post",
        "https://example.com/post/second",
        "https://example.com/2024/05/third",
    ]

    limited = toolkit.collect_article_links(soup, "https://example.com/blog/", BLOG_PROFILE, 2)
    assert len(limited) == 2


def test_news_links_skip_tag_pages_and_read_data_attributes():
    soup = _soup(
        '<div class="news-item"><a href="/news/tag/science">Tag</a></div>'
        '<div data-story-url="/story/big-launch">Launch</div>'
    )
    links = toolkit.collect_article_links(soup, "https://news.example.com/", NEWS_PROFILE, 10)
    assert links == ["https://news.example.com/story/big-launch"]
