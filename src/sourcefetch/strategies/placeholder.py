"""Metadata-only placeholder for videos whose words could not be obtained.

Reads public metadata from the watch page and fills a research template.
Output is always degraded: it describes the video but contains none of its
spoken content.
"""

import html
import json
import logging
import re
from typing import Any, Callable, Dict, Optional

import aiohttp

from sourcefetch.core.constants import METADATA_PLACEHOLDER
from sourcefetch.core.errors import HTTPStatusError, SourceUnavailableError
from sourcefetch.core.source import Confidence, RawResult, SourceKind
from sourcefetch.strategies.base import ExtractionStrategy
from sourcefetch.utils.html import BROWSER_HEADERS
from sourcefetch.utils.youtube import video_url

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_CHARS = 1000


def extract_video_metadata(page: str) -> Dict[str, Any]:
    """
    Extract video metadata from a YouTube watch page.

    Args:
        page: Watch page HTML

    Returns:
        Dict with title, channel, upload_date, description, duration_seconds,
        view_count and keywords (missing values are None/empty)
    """
    metadata: Dict[str, Any] = {
        "title": None,
        "channel": None,
        "upload_date": None,
        "description": None,
        "duration_seconds": None,
        "view_count": None,
        "keywords": [],
    }

    title_match = re.search(r'<meta property="og:title" content="([^"]+)"', page)
    if title_match:
        metadata["title"] = html.unescape(title_match.group(1))

    channel_match = re.search(r'"channelName":"([^"]+)"', page) or re.search(
        r'"author":"([^"]+)"', page
    )
    if channel_match:
        metadata["channel"] = channel_match.group(1)

    date_match = re.search(r'"uploadDate":"([^"]+)"', page)
    if date_match:
        metadata["upload_date"] = date_match.group(1).split("T")[0]

    desc_match = re.search(r'<meta property="og:description" content="([^"]*)"', page)
    if desc_match and desc_match.group(1):
        metadata["description"] = html.unescape(desc_match.group(1))

    length_match = re.search(r'"lengthSeconds":"(\d+)"', page)
    if length_match:
        metadata["duration_seconds"] = int(length_match.group(1))

    views_match = re.search(r'"viewCount":"(\d+)"', page)
    if views_match:
        metadata["view_count"] = int(views_match.group(1))

    keywords_match = re.search(r'"keywords":(\[[^\]]*\])', page)
    if keywords_match:
        try:
            metadata["keywords"] = [str(k) for k in json.loads(keywords_match.group(1))]
        except ValueError:
            logger.debug("Could not parse keywords from watch page")

    return metadata


def _format_duration(seconds: Optional[int]) -> str:
    if seconds is None:
        return "Unknown"
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"


def build_placeholder(video_id: str, metadata: Dict[str, Any]) -> str:
    """Fill the video analysis template from page metadata."""
    title = metadata.get("title") or "Untitled Video"
    channel = metadata.get("channel") or "Unknown Creator"
    views = metadata.get("view_count")

    lines = [
        f'# YouTube Video Analysis: "{title}"',
        "",
        "## Video Information",
        f"- **Channel**: {channel}",
        f"- **Published**: {metadata.get('upload_date') or 'Unknown'}",
        f"- **Duration**: {_format_duration(metadata.get('duration_seconds'))}",
        f"- **Views**: {f'{views:,}' if views is not None else 'Unknown'}",
        f"- **URL**: {video_url(video_id)}",
        "",
    ]

    description = metadata.get("description")
    if description:
        lines.extend(["## About This Video", description[:MAX_DESCRIPTION_CHARS]])
        if len(description) > MAX_DESCRIPTION_CHARS:
            lines.append("...(description truncated)")
        lines.append("")

    if metadata.get("keywords"):
        lines.append("## Keywords")
        lines.extend(f"- {kw}" for kw in metadata["keywords"])
        lines.append("")

    lines.extend(
        [
            "## Content Analysis Suggestions",
            "The transcript of this video is not available through automatic "
            "tools. To work with it:",
            "",
            "1. **Manual Review**: Watch the video and note the key information",
            "2. **Content Analysis**: Record the main topics, messages and statistics",
            "3. **Visual Elements**: Look for charts, graphics or demonstrations",
            f"4. **Channel Context**: Compare with other content from {channel}",
            "",
            "---",
            "*Note: This analysis is generated from video metadata only.*",
        ]
    )
    return "\n".join(lines)


class MetadataPlaceholderStrategy(ExtractionStrategy):
    """Build a templated placeholder from public video metadata."""

    kind = SourceKind.VIDEO
    confidence = Confidence.DEGRADED

    def __init__(
        self,
        session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession,
    ):
        self._session_factory = session_factory

    @property
    def strategy_id(self) -> str:
        return METADATA_PLACEHOLDER

    async def extract(
        self, reference: str, hints: Dict[str, Any], budget: float
    ) -> RawResult:
        url = video_url(reference)
        logger.info(f"Fetching video metadata for placeholder: {url}")

        timeout = aiohttp.ClientTimeout(total=budget)
        async with self._session_factory(timeout=timeout) as session:
            async with session.get(url, headers=BROWSER_HEADERS) as response:
                if response.status != 200:
                    raise HTTPStatusError(response.status, url)
                page = await response.text()

        metadata = extract_video_metadata(page)
        if not metadata["title"] and not metadata["description"]:
            raise SourceUnavailableError(f"No public metadata found for {reference}")

        return RawResult(
            body=build_placeholder(reference, metadata),
            strategy_id=self.strategy_id,
            confidence=self.confidence,
            title=metadata["title"],
            summary=(metadata["description"] or "")[:300] or None,
            metadata={
                "url": url,
                "channel": metadata["channel"],
                "upload_date": metadata["upload_date"],
                "placeholder": True,
            },
        )
