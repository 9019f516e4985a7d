"""Selector cascades shared by the server-side toolkit and the in-page script.

Everything here is plain data (strings, tuples, dicts) so the same lists can
be serialized and handed to the browser for in-page evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

TITLE_SELECTORS: Tuple[str, ...] = (
    "article h1",
    "article header h1",
    ".post-title",
    ".entry-title",
    ".article-title",
    ".blog-post-title",
    ".news-title",
    ".story-title",
    ".headline",
    "h1.post-title",
    "h1.entry-title",
    "h1.article-title",
    '[role="article"] h1',
    "main h1",
    "main article h1",
    ".content h1",
    "#content h1",
    ".article-header h1",
    ".post-header h1",
    "header h1",
    "h1",
)

NEWS_TITLE_SELECTORS: Tuple[str, ...] = (
    ".headline",
    ".news-title",
    ".story-title",
    ".article-headline",
    "h1.headline",
    "h1.news-title",
    "h1.story-title",
    ".article-header h1",
    ".story-header h1",
    ".news-header h1",
    "article h1",
    "article header h1",
    '[role="article"] h1',
    "main h1",
    "main article h1",
    ".content h1",
    "#content h1",
    "h1",
)

TITLE_SEPARATORS: Tuple[str, ...] = ("|", "-", "\u2014")
TITLE_MIN_LENGTH = 5

# plain-text lengths shared by the static parser and the in-page script
CONTENT_ACCEPT_LENGTH = 500
MAX_TEXT_CONTENT = 20_000

CONTENT_SELECTORS: Tuple[str, ...] = (
    "article",
    '[role="article"]',
    ".post-content",
    ".entry-content",
    ".article-content",
    ".blog-post-content",
    ".news-content",
    ".story-content",
    ".post-body",
    ".entry-body",
    ".article-body",
    ".news-body",
    ".story-body",
    "main article",
    "main .article",
    ".content",
    "#content",
    "#post-content",
    "#article-content",
    ".article-text",
    ".post-text",
    ".entry-text",
    '[class*="article"]',
    '[class*="post"]',
    '[class*="entry"]',
)

NEWS_CONTENT_SELECTORS: Tuple[str, ...] = (
    ".article-content",
    ".news-content",
    ".story-content",
    ".article-body",
    ".news-body",
    ".story-body",
    ".article-text",
    ".news-text",
    ".story-text",
    "article",
    '[role="article"]',
    ".post-content",
    ".entry-content",
    "main article",
    "main .article",
    ".content",
    "#content",
    "#article-content",
    "#news-content",
    "#story-content",
)

REMOVAL_SELECTORS: Tuple[str, ...] = (
    "script",
    "style",
    "noscript",
    "nav",
    "header",
    "footer",
    ".ad",
    ".advertisement",
    ".ads",
    ".adsense",
    ".sidebar",
    ".comments",
    ".comment",
    ".social-share",
    ".share-buttons",
    ".author-box",
    ".related-posts",
    ".related-articles",
    ".newsletter",
    ".subscribe",
    ".tags",
    ".categories",
    ".breadcrumb",
    ".navigation",
    ".menu",
    "iframe",
    ".embed",
    ".video-player",
)

LAYOUT_WIDGET_SELECTORS: Tuple[str, ...] = (
    ".widget",
    ".sidebar-widget",
    ".footer-widget",
)

NEWS_EXTRA_REMOVAL_SELECTORS: Tuple[str, ...] = (
    ".newsletter-signup",
    ".trending",
    ".popular",
)

# (selector, attributes read in order; "text" means the element text)
DATE_SELECTORS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("time[datetime]", ("datetime",)),
    ("time[pubdate]", ("pubdate", "datetime", "text")),
    ('meta[property="article:published_time"]', ("content",)),
    ('meta[name="publishdate"]', ("content",)),
    ('meta[name="pubdate"]', ("content",)),
    ('meta[name="date"]', ("content",)),
    (".published", ("datetime", "content", "text")),
    (".post-date", ("datetime", "text")),
    (".entry-date", ("datetime", "text")),
    (".article-date", ("datetime", "text")),
    (".news-date", ("datetime", "text")),
    (".story-date", ("datetime", "text")),
    (".publish-date", ("datetime", "text")),
    (".date-published", ("datetime", "text")),
    ('[class*="date"]', ("datetime", "content", "text")),
    ('[class*="time"]', ("datetime", "content", "text")),
)

CONTENT_IMAGE_SELECTORS: Tuple[str, ...] = (
    "article img",
    ".post-content img",
    ".entry-content img",
    ".article-content img",
    ".news-content img",
    ".story-content img",
    "main img",
)

META_IMAGE_SELECTORS: Tuple[str, ...] = (
    'meta[property="og:image"]',
    'meta[name="twitter:image"]',
    'meta[property="article:image"]',
    'meta[name="image"]',
)

IMAGE_SOURCE_ATTRIBUTES: Tuple[str, ...] = (
    "src",
    "data-src",
    "data-lazy-src",
    "data-original",
    "data-url",
)

LAZY_IMAGE_ATTRIBUTES: Tuple[str, ...] = (
    "data-src",
    "data-lazy-src",
    "data-original",
    "data-url",
    "loading",
)

BLOG_LINK_SELECTORS: Tuple[str, ...] = (
    "article a[href]",
    ".post a[href]",
    ".entry a[href]",
    ".blog-post a[href]",
    "h2 a[href]",
    "h3 a[href]",
    ".post-title a[href]",
    ".entry-title a[href]",
    'a[href*="/blog/"]',
    'a[href*="/post/"]',
    'a[href*="/article/"]',
    'a[href*="/entry/"]',
    'a[href*="/news/"]',
    'a[href*="/p/"]',
)

NEWS_LINK_SELECTORS: Tuple[str, ...] = (
    "article a[href]",
    ".news-item a[href]",
    ".article-item a[href]",
    ".story a[href]",
    ".post a[href]",
    "h2 a[href]",
    "h3 a[href]",
    ".headline a[href]",
    ".title a[href]",
    'a[href*="/news/"]',
    'a[href*="/article/"]',
    'a[href*="/story/"]',
    'a[href*="/post/"]',
    "[data-article-url]",
    "[data-story-url]",
)

LINK_ATTRIBUTES: Tuple[str, ...] = ("href", "data-article-url", "data-story-url")

BLOG_ARTICLE_PATH_PATTERNS: Tuple[str, ...] = (
    r"/blog/",
    r"/post/",
    r"/posts/",
    r"/article/",
    r"/entry/",
    r"/news/",
    r"/p/",
    r"/\d{4}/\d{2}/",
)

NEWS_ARTICLE_PATH_PATTERNS: Tuple[str, ...] = (
    r"/news/",
    r"/article/",
    r"/story/",
    r"/post/",
    r"/\d{4}/\d{2}/",
)

NEWS_EXCLUDED_PATH_PATTERNS: Tuple[str, ...] = (
    r"/tag/",
    r"/category/",
    r"/author/",
)

FRAMEWORK_MARKERS: Tuple[str, ...] = (
    "__NEXT_DATA__",
    "__NUXT__",
    "window.__INITIAL_STATE__",
    "window.__APOLLO_STATE__",
    "ng-app",
    "ng-version",
    "data-reactroot",
    "data-react-helmet",
    "data-server-rendered",
    'id="__next"',
    'id="__nuxt"',
    'id="___gatsby"',
    'id="app"></div>',
    'id="root"></div>',
)


@dataclass(frozen=True)
class SelectorProfile:
    """Selector lists one static strategy uses for a page."""

    name: str
    title: Tuple[str, ...] = TITLE_SELECTORS
    content: Tuple[str, ...] = CONTENT_SELECTORS
    removal: Tuple[str, ...] = REMOVAL_SELECTORS
    wide_removal: Tuple[str, ...] = REMOVAL_SELECTORS + LAYOUT_WIDGET_SELECTORS
    links: Tuple[str, ...] = BLOG_LINK_SELECTORS
    article_paths: Tuple[str, ...] = BLOG_ARTICLE_PATH_PATTERNS
    excluded_paths: Tuple[str, ...] = field(default_factory=tuple)

    def to_render_payload(self) -> Dict[str, Any]:
        """Serializable form consumed by the in-page extraction script."""
        return {
            "title": list(self.title),
            "titleSeparators": list(TITLE_SEPARATORS),
            "titleMinLength": TITLE_MIN_LENGTH,
            "contentAcceptLength": CONTENT_ACCEPT_LENGTH,
            "bodyTextMaxLength": MAX_TEXT_CONTENT,
            "content": list(self.content),
            "removal": ", ".join(self.removal),
            "wideRemoval": ", ".join(self.wide_removal),
            "contentImages": list(CONTENT_IMAGE_SELECTORS),
            "metaImages": list(META_IMAGE_SELECTORS),
            "imageAttributes": list(IMAGE_SOURCE_ATTRIBUTES),
            "lazyAttributes": list(LAZY_IMAGE_ATTRIBUTES),
            "dates": [[selector, list(attrs)] for selector, attrs in DATE_SELECTORS],
        }


BLOG_PROFILE = SelectorProfile(name="blog")

NEWS_PROFILE = SelectorProfile(
    name="news",
    title=NEWS_TITLE_SELECTORS,
    content=NEWS_CONTENT_SELECTORS,
    removal=REMOVAL_SELECTORS + NEWS_EXTRA_REMOVAL_SELECTORS,
    wide_removal=REMOVAL_SELECTORS + LAYOUT_WIDGET_SELECTORS + NEWS_EXTRA_REMOVAL_SELECTORS,
    links=NEWS_LINK_SELECTORS,
    article_paths=NEWS_ARTICLE_PATH_PATTERNS,
    excluded_paths=NEWS_EXCLUDED_PATH_PATTERNS,
)
