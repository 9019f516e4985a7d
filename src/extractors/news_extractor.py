"""Static extraction tuned for news websites."""

from __future__ import annotations

from typing import Tuple

from bs4 import BeautifulSoup

from . import toolkit
from .blog_extractor import BlogExtractor
from .selectors import NEWS_PROFILE, SelectorProfile


class NewsWebsiteExtractor(BlogExtractor):
    """Same protocol as the blog extractor with news-specific selector lists.

    The wide ``<body>`` pass keeps plain text only, since news page bodies
    carry far more markup noise than blog bodies.
    """

    profile: SelectorProfile = NEWS_PROFILE
    max_links_setting = "news_max_links"

    def _wide_body_content(self, soup: BeautifulSoup, url: str) -> Tuple[str, int]:
        text = toolkit.extract_body_text(soup, url, self.profile.wide_removal)
        return text, len(text)


__all__ = ["NewsWebsiteExtractor"]
