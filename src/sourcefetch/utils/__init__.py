"""Helpers shared across strategies."""

from sourcefetch.utils.html import (
    BROWSER_HEADERS,
    normalize_url,
    select_main_content,
    strip_noise,
)
from sourcefetch.utils.youtube import extract_video_id, is_video_id, video_url

__all__ = [
    "BROWSER_HEADERS",
    "normalize_url",
    "select_main_content",
    "strip_noise",
    "extract_video_id",
    "is_video_id",
    "video_url",
]
