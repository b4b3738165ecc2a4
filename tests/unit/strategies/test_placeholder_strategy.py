"""Unit tests for the metadata placeholder strategy."""

import pytest

from sourcefetch.core.errors import HTTPStatusError, SourceUnavailableError
from sourcefetch.core.source import Confidence
from sourcefetch.strategies.placeholder import (
    MetadataPlaceholderStrategy,
    build_placeholder,
    extract_video_metadata,
)

VIDEO_ID = "dQw4w9WgXcQ"
WATCH_URL = f"https://www.youtube.com/watch?v={VIDEO_ID}"

WATCH_PAGE = """
<html><head>
<meta property="og:title" content="Widgets &amp; Gadgets Explained">
<meta property="og:description" content="A tour of how widgets are made.">
</head><body><script>
var ytInitialPlayerResponse = {"videoDetails": {"lengthSeconds":"754",
"keywords":["widgets","manufacturing"],"channelName":"Acme Channel",
"viewCount":"1234567"}, "microformat": {"uploadDate":"2023-04-01T08:00:00-07:00"}};
</script></body></html>
"""


@pytest.mark.unit
class TestVideoMetadata:
    def test_extracts_fields(self):
        metadata = extract_video_metadata(WATCH_PAGE)

        assert metadata == {
            "title": "Widgets & Gadgets Explained",
            "channel": "Acme Channel",
            "upload_date": "2023-04-01",
            "description": "A tour of how widgets are made.",
            "duration_seconds": 754,
            "view_count": 1234567,
            "keywords": ["widgets", "manufacturing"],
        }

    def test_missing_fields_are_empty(self):
        metadata = extract_video_metadata("<html></html>")

        assert metadata["title"] is None
        assert metadata["keywords"] == []

    def test_template(self):
        text = build_placeholder(VIDEO_ID, extract_video_metadata(WATCH_PAGE))

        assert text.startswith('# YouTube Video Analysis: "Widgets & Gadgets Explained"')
        assert "- **Duration**: 12:34" in text
        assert "- **Views**: 1,234,567" in text
        assert "## Keywords\n- widgets\n- manufacturing" in text
        assert "generated from video metadata only" in text

    def test_template_defaults(self):
        text = build_placeholder(VIDEO_ID, {"description": "x" * 1200})

        assert '"Untitled Video"' in text
        assert "- **Duration**: Unknown" in text
        assert "...(description truncated)" in text


@pytest.mark.unit
class TestMetadataPlaceholderStrategy:
    @pytest.mark.asyncio
    async def test_builds_degraded_placeholder(self, fake_session, fake_response):
        session = fake_session({WATCH_URL: fake_response(body=WATCH_PAGE)})
        strategy = MetadataPlaceholderStrategy(session_factory=session)

        raw = await strategy.extract(VIDEO_ID, {}, budget=15)

        assert raw.confidence == Confidence.DEGRADED
        assert raw.title == "Widgets & Gadgets Explained"
        assert raw.summary == "A tour of how widgets are made."
        assert raw.metadata["placeholder"] is True
        assert "User-Agent" in session.requests[0][2]["headers"]

    @pytest.mark.asyncio
    async def test_page_without_metadata(self, fake_session, fake_response):
        session = fake_session({WATCH_URL: fake_response(body="<html></html>")})
        strategy = MetadataPlaceholderStrategy(session_factory=session)

        with pytest.raises(SourceUnavailableError):
            await strategy.extract(VIDEO_ID, {}, budget=15)

    @pytest.mark.asyncio
    async def test_http_error(self, fake_session, fake_response):
        session = fake_session({WATCH_URL: fake_response(status=429)})
        strategy = MetadataPlaceholderStrategy(session_factory=session)

        with pytest.raises(HTTPStatusError) as exc_info:
            await strategy.extract(VIDEO_ID, {}, budget=15)
        assert exc_info.value.status == 429
