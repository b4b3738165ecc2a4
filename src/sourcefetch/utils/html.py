"""HTML helpers shared by the web scraping strategies."""

import re
from typing import Optional, Union
from urllib.parse import urlparse, urlunparse

from bs4 import BeautifulSoup, Tag

# Browser-like headers to avoid bot detection
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
}

CONTENT_SELECTORS = ["main", "article", '[role="main"]', ".content", "#content"]

NOISE_TAGS = [
    "script",
    "style",
    "noscript",
    "iframe",
    "svg",
    "img",
    "link",
    "meta",
    "nav",
    "header",
    "footer",
    "aside",
    "form",
    "button",
]

# Matched against each class name and the id, one hyphen/underscore word at a time
NOISE_WORD = re.compile(
    r"(?:^|[-_])(?:ads?|advert\w*|banner|cookies?|modal|popup|sidebar|share|social"
    r"|menu|nav\w*|header|footer|comments?|related|recommend\w*)(?:$|[-_])",
    re.IGNORECASE,
)


def normalize_url(url: str) -> str:
    """Canonicalise a user-supplied page URL.

    Adds ``https://`` when the scheme is missing and drops the fragment.

    Raises:
        ValueError: If the URL is not http(s) or has no host.
    """
    url = url.strip()
    if "://" not in url:
        url = f"https://{url}"
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid URL format: {url}")
    return urlunparse(parsed._replace(fragment=""))


def is_noise(tag: Tag) -> bool:
    """Whether a tag's class or id marks it as page chrome rather than content."""
    names = list(tag.get("class") or [])
    if tag.get("id"):
        names.append(tag["id"])
    return any(NOISE_WORD.search(name) for name in names)


def _drop(tags) -> None:
    for tag in tags:
        # Children of an already removed parent are gone with it
        if not tag.decomposed:
            tag.decompose()


def strip_noise(content: Union[BeautifulSoup, Tag]) -> Union[BeautifulSoup, Tag]:
    """Remove page chrome from ``content`` in place and return it.

    Drops non-text elements, navigation and layout tags, anything whose
    class or id names chrome (ads, cookie banners, sidebars, share bars),
    then the empty containers left behind.
    """
    _drop(content.find_all(NOISE_TAGS))
    _drop(content.find_all(is_noise))
    _drop(
        tag
        for tag in content.find_all(["p", "div", "span"])
        if not tag.decomposed and not tag.get_text(strip=True)
    )
    return content


def select_main_content(soup: BeautifulSoup) -> Optional[Tag]:
    """Pick the main content element, falling back to <body>."""
    for selector in CONTENT_SELECTORS:
        content = soup.select_one(selector)
        if content:
            return content
    return soup.find("body")
