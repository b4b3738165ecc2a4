"""YouTube URL helpers."""

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

logger = logging.getLogger(__name__)

VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")

_PATH_PREFIXES = ("/embed/", "/v/", "/shorts/", "/live/", "/video/")


def is_video_id(value: str) -> bool:
    """Check whether a string looks like a bare 11-character video id."""
    return bool(VIDEO_ID_PATTERN.match(value or ""))


def video_url(reference: str) -> str:
    """Watch URL for a video reference.

    Bare ids are YouTube ids; full URLs from other platforms pass through.
    """
    if "://" in reference:
        return reference
    return f"https://www.youtube.com/watch?v={reference}"


def extract_video_id(value: str) -> Optional[str]:
    """
    Extract a YouTube video ID from a URL or bare id.

    Supports formats:
    - VIDEO_ID (bare 11-character id)
    - https://www.youtube.com/watch?v=VIDEO_ID
    - https://m.youtube.com/watch?v=VIDEO_ID
    - https://youtu.be/VIDEO_ID
    - https://www.youtube.com/embed/VIDEO_ID
    - https://www.youtube.com/v/VIDEO_ID
    - https://www.youtube.com/shorts/VIDEO_ID
    - https://studio.youtube.com/video/VIDEO_ID/edit

    Args:
        value: URL or id

    Returns:
        Video ID or None if extraction fails
    """
    value = (value or "").strip()
    if not value:
        return None
    if is_video_id(value):
        return value

    if "://" not in value and ("youtube.com" in value or "youtu.be" in value):
        value = f"https://{value}"

    try:
        parsed = urlparse(value)
    except ValueError as e:
        logger.warning(f"Failed to extract video ID from {value}: {e}")
        return None

    netloc = parsed.netloc.lower()

    # youtu.be format: path is /VIDEO_ID
    if netloc.endswith("youtu.be"):
        video_id = parsed.path.strip("/").split("/")[0]
        return video_id or None

    if not netloc.endswith("youtube.com"):
        return None

    if parsed.path == "/watch":
        query_params = parse_qs(parsed.query)
        if "v" in query_params and query_params["v"][0]:
            return query_params["v"][0]
        return None

    for prefix in _PATH_PREFIXES:
        if parsed.path.startswith(prefix):
            video_id = parsed.path[len(prefix) :].split("/")[0]
            if video_id:
                return video_id

    return None
