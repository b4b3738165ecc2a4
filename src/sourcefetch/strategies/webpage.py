"""Webpage extraction strategies.

``comprehensive-scrape`` walks a handful of same-site pages breadth-first
(about, pricing and contact pages first) and merges what it finds into one
research document. ``basic-scrape`` converts a single page to markdown.
"""

import asyncio
import logging
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List
from urllib.parse import urljoin, urlparse, urlunparse

import aiohttp
from bs4 import BeautifulSoup
from markdownify import markdownify as md

from sourcefetch.core.constants import BASIC_SCRAPE, COMPREHENSIVE_SCRAPE, MAX_CRAWL_DEPTH
from sourcefetch.core.errors import (
    EmptyContentError,
    ExtractionError,
    HTTPStatusError,
    SourceUnavailableError,
)
from sourcefetch.core.source import Confidence, RawResult, SourceKind
from sourcefetch.strategies.base import ExtractionStrategy
from sourcefetch.utils.html import (
    BROWSER_HEADERS,
    select_main_content,
    strip_noise,
)

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ("text/html", "text/plain", "application/xhtml+xml")

PRIORITY_PATHS = (
    "/about",
    "/about-us",
    "/company",
    "/who-we-are",
    "/pricing",
    "/plans",
    "/plans-and-pricing",
    "/products",
    "/services",
    "/contact",
    "/contact-us",
)

SKIPPED_LINK_PREFIXES = ("#", "javascript:", "mailto:", "tel:")
SKIPPED_EXTENSIONS = (
    ".pdf",
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".svg",
    ".webp",
    ".zip",
    ".mp3",
    ".mp4",
    ".css",
    ".js",
    ".ico",
)
SOCIAL_DOMAINS = ("facebook", "twitter", "x.com", "linkedin", "instagram", "youtube")

MIN_SNIPPET_CHARS = 20

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"(?:\+\d{1,3}[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}")
PRICE_PATTERN = re.compile(r"(?:\$|€|£|USD|EUR|GBP)\s?[0-9]+(?:[.,][0-9]{2})?")
SYMBOLS_ONLY = re.compile(r"^[0-9\s.\-:/\\+={}\[\](),;\"'`~!@#$%^&*_|]+$")

CODE_MARKERS = (
    "function(",
    "var ",
    "window.",
    "document.",
    "@media",
    "@keyframes",
    "@font-face",
    "animation-timing-function",
    "transform:",
    "-webkit-",
    "unicode-range:",
    "font-display:",
    "data:image/",
    "rgba(",
)


def clean_snippet(text: str) -> str:
    """Collapse whitespace; return '' for code, CSS and symbol noise."""
    if not text:
        return ""
    if any(marker in text for marker in CODE_MARKERS) or re.search(
        r"U\+[0-9A-F]{4}", text, re.IGNORECASE
    ):
        return ""
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > MIN_SNIPPET_CHARS and SYMBOLS_ONLY.match(text):
        return ""
    # Long runs without spaces are minified assets or tokens
    if len(text) > 100 and len(text.split(" ")) < 10:
        return ""
    return text


def _same_site(a: str, b: str) -> bool:
    def host(netloc: str) -> str:
        netloc = netloc.lower()
        return netloc[4:] if netloc.startswith("www.") else netloc

    return host(a) == host(b)


def _dedupe(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


@dataclass
class PageData:
    """What one crawled page contributed."""

    url: str
    title: str = ""
    description: str = ""
    headings: List[str] = field(default_factory=list)
    paragraphs: List[str] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)
    social_links: List[str] = field(default_factory=list)
    prices: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)

    @property
    def has_content(self) -> bool:
        return bool(self.title or self.description or self.headings or self.paragraphs)


def extract_links(soup: BeautifulSoup, base_url: str) -> List[str]:
    """Same-site http(s) links of a page, fragments stripped, in document order."""
    base = urlparse(base_url)
    links = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.lower().startswith(SKIPPED_LINK_PREFIXES):
            continue
        parsed = urlparse(urljoin(base_url, href))
        if parsed.scheme not in ("http", "https") or not _same_site(
            parsed.netloc, base.netloc
        ):
            continue
        if parsed.path.lower().endswith(SKIPPED_EXTENSIONS):
            continue
        links.append(urlunparse(parsed._replace(fragment="")))
    return _dedupe(links)


def extract_page_data(page_html: str, url: str) -> PageData:
    """Pull title, description, text and contact details out of one page."""
    soup = BeautifulSoup(page_html, "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""
    if not title:
        og_title = soup.find("meta", attrs={"property": "og:title"})
        title = og_title.get("content", "").strip() if og_title else ""

    description = ""
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content"):
            description = meta["content"].strip()
            break

    links = extract_links(soup, url)
    social_links = _dedupe(
        [
            a["href"]
            for a in soup.find_all("a", href=True)
            if any(domain in a["href"].lower() for domain in SOCIAL_DOMAINS)
        ]
    )

    # Contact details are read before noise removal drops headers and footers
    body = soup.find("body") or soup
    full_text = body.get_text(" ", strip=True)
    emails = _dedupe(EMAIL_PATTERN.findall(full_text))
    phones = _dedupe(m.strip() for m in PHONE_PATTERN.findall(full_text))

    content = select_main_content(soup) or soup
    content = strip_noise(content)

    headings = _dedupe(
        [
            text
            for text in (
                clean_snippet(h.get_text(" ", strip=True))
                for h in content.find_all(["h1", "h2", "h3"])
            )
            if text
        ]
    )
    paragraphs = _dedupe(
        [
            text
            for text in (
                clean_snippet(p.get_text(" ", strip=True))
                for p in content.find_all(["p", "li"])
            )
            if len(text) > MIN_SNIPPET_CHARS
        ]
    )
    prices = _dedupe(PRICE_PATTERN.findall(content.get_text(" ", strip=True)))

    return PageData(
        url=url,
        title=title,
        description=description,
        headings=headings,
        paragraphs=paragraphs,
        emails=emails,
        phones=phones,
        social_links=social_links,
        prices=prices,
        links=links,
    )


def prioritize_links(links: List[str]) -> List[str]:
    """Order links so that about/pricing/contact style pages come first."""

    def rank(link: str) -> int:
        path = urlparse(link).path.rstrip("/").lower()
        return 0 if path in PRIORITY_PATHS else 1

    return sorted(links, key=rank)


def render_site(root_url: str, pages: List[PageData], max_page_chars: int) -> str:
    """Merge crawled pages into one markdown document."""
    title = next((p.title for p in pages if p.title), "") or root_url
    description = next((p.description for p in pages if p.description), "")

    lines = [f"# {title}", "", f"**Website**: {root_url}", ""]
    if description:
        lines.extend(["## Overview", "", description, ""])

    for page in pages:
        section: List[str] = [f"## {page.title or page.url}", "", f"*{page.url}*", ""]
        if page.headings:
            section.extend(f"- {h}" for h in page.headings)
            section.append("")
        section.extend(f"{p}\n" for p in page.paragraphs)
        text = "\n".join(section)
        if len(text) > max_page_chars:
            text = text[:max_page_chars] + "\n\n[Page truncated...]"
        lines.extend([text, ""])

    prices = _dedupe([price for p in pages for price in p.prices])
    if prices:
        lines.extend(["## Pricing Mentions", ""])
        lines.extend(f"- {price}" for price in prices)
        lines.append("")

    emails = _dedupe([e for p in pages for e in p.emails])
    phones = _dedupe([ph for p in pages for ph in p.phones])
    social = _dedupe([s for p in pages for s in p.social_links])
    if emails or phones or social:
        lines.extend(["## Contact Information", ""])
        if emails:
            lines.append(f"- **Email**: {', '.join(emails)}")
        if phones:
            lines.append(f"- **Phone**: {', '.join(phones)}")
        for link in social:
            lines.append(f"- **Social**: {link}")
        lines.append("")

    lines.append("## Pages scraped")
    lines.append("")
    lines.extend(f"- {p.url}" for p in pages)
    return "\n".join(lines)


async def fetch_html(session: aiohttp.ClientSession, url: str) -> str:
    """GET a page and return its HTML.

    Raises:
        HTTPStatusError: Non-200 response
        SourceUnavailableError: Response is not HTML
    """
    async with session.get(url, headers=BROWSER_HEADERS) as response:
        if response.status != 200:
            raise HTTPStatusError(response.status, url)
        content_type = response.headers.get("Content-Type", "")
        if content_type and not content_type.startswith(HTML_CONTENT_TYPES):
            raise SourceUnavailableError(
                f"URL does not point to HTML content: {content_type}"
            )
        return await response.text()


class ComprehensiveScrapeStrategy(ExtractionStrategy):
    """Shallow breadth-first crawl of a site starting at the given page."""

    kind = SourceKind.WEBPAGE
    confidence = Confidence.PRIMARY

    def __init__(
        self,
        max_depth: int = 2,
        max_pages: int = 10,
        request_delay: float = 0.5,
        max_page_chars: int = 50_000,
        session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_depth = max_depth
        self.max_pages = max_pages
        self.request_delay = request_delay
        self.max_page_chars = max_page_chars
        self._session_factory = session_factory
        self._sleep = sleep

    @property
    def strategy_id(self) -> str:
        return COMPREHENSIVE_SCRAPE

    async def crawl(
        self, session: aiohttp.ClientSession, root_url: str, max_depth: int
    ) -> List[PageData]:
        """Visit pages breadth-first; failures below the root page are skipped."""
        queue = deque([(root_url, 0)])
        visited = set()
        pages: List[PageData] = []

        while queue and len(pages) < self.max_pages:
            url, depth = queue.popleft()
            # "https://a.test" and "https://a.test/" are the same page
            page_key = url.rstrip("/")
            if page_key in visited:
                continue
            visited.add(page_key)

            if pages and self.request_delay > 0:
                await self._sleep(self.request_delay)

            try:
                page_html = await fetch_html(session, url)
            except (ExtractionError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                if url == root_url:
                    raise
                logger.warning(f"Skipping {url}: {e}")
                continue

            page = extract_page_data(page_html, url)
            pages.append(page)
            logger.debug(f"Scraped {url} (depth {depth}, {len(page.paragraphs)} paragraphs)")

            if depth < max_depth:
                for link in prioritize_links(page.links):
                    if link.rstrip("/") not in visited:
                        queue.append((link, depth + 1))

        return pages

    def _depth_for(self, hints: Dict[str, Any]) -> int:
        """Crawl depth from the ``max_depth`` hint, clamped to a sane range."""
        value = hints.get("max_depth")
        if value is None:
            return self.max_depth
        try:
            depth = int(value)
        except (TypeError, ValueError):
            logger.warning(
                f"Ignoring invalid max_depth hint {value!r}; using {self.max_depth}"
            )
            return self.max_depth
        return max(0, min(depth, MAX_CRAWL_DEPTH))

    async def extract(
        self, reference: str, hints: Dict[str, Any], budget: float
    ) -> RawResult:
        max_depth = self._depth_for(hints)
        logger.info(f"Crawling {reference} (depth {max_depth}, max {self.max_pages} pages)")

        timeout = aiohttp.ClientTimeout(total=budget)
        async with self._session_factory(timeout=timeout) as session:
            pages = await self.crawl(session, reference, max_depth)

        useful = [p for p in pages if p.has_content]
        if not useful:
            raise EmptyContentError(f"No readable content found at {reference}")

        title = next((p.title for p in useful if p.title), None)
        description = next((p.description for p in useful if p.description), None)
        logger.info(f"Crawled {len(pages)} pages from {reference}")
        return RawResult(
            body=render_site(reference, useful, self.max_page_chars),
            strategy_id=self.strategy_id,
            confidence=self.confidence,
            title=title,
            summary=description,
            metadata={
                "pages_scraped": [p.url for p in pages],
                "emails": _dedupe([e for p in pages for e in p.emails]),
                "phones": _dedupe([ph for p in pages for ph in p.phones]),
            },
        )


class BasicScrapeStrategy(ExtractionStrategy):
    """Convert the main content of a single page to markdown."""

    kind = SourceKind.WEBPAGE
    confidence = Confidence.FALLBACK

    def __init__(
        self,
        session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession,
    ):
        self._session_factory = session_factory

    @property
    def strategy_id(self) -> str:
        return BASIC_SCRAPE

    @staticmethod
    def html_to_markdown(page_html: str) -> tuple:
        """Return (markdown, title) for a page's main content."""
        soup = BeautifulSoup(page_html, "html.parser")

        title_tag = soup.find("title")
        page_title = title_tag.get_text(strip=True) if title_tag else ""

        content = select_main_content(soup)
        if not content:
            raise EmptyContentError("No content found in page")

        content = strip_noise(content)
        markdown = md(str(content), heading_style="ATX")
        return markdown.strip(), page_title

    async def extract(
        self, reference: str, hints: Dict[str, Any], budget: float
    ) -> RawResult:
        logger.info(f"Fetching single page: {reference}")
        timeout = aiohttp.ClientTimeout(total=budget)
        async with self._session_factory(timeout=timeout) as session:
            page_html = await fetch_html(session, reference)

        markdown, title = self.html_to_markdown(page_html)
        if not markdown:
            raise EmptyContentError(f"Page {reference} has no readable content")

        return RawResult(
            body=markdown,
            strategy_id=self.strategy_id,
            confidence=self.confidence,
            title=title or None,
            metadata={"url": reference},
        )

