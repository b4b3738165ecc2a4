"""Caption lookup for YouTube videos.

Uses youtube-transcript-api. The library is synchronous, so the lookup runs
in the default executor and is bounded by the attempt budget.
"""

import asyncio
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from youtube_transcript_api import YouTubeTranscriptApi
from youtube_transcript_api._errors import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    RequestBlocked,
    TranscriptsDisabled,
    VideoUnavailable,
    YouTubeRequestFailed,
)

from sourcefetch.core.constants import CAPTIONS, MAX_TRANSCRIPT_CHARS
from sourcefetch.core.errors import (
    EmptyContentError,
    SourceUnavailableError,
    TransientNetworkError,
)
from sourcefetch.core.source import Confidence, RawResult, SourceKind
from sourcefetch.strategies.base import ExtractionStrategy
from sourcefetch.utils.youtube import is_video_id, video_url

logger = logging.getLogger(__name__)


def format_transcript(
    video_id: str,
    transcript_text: str,
    language: Optional[str] = None,
    max_chars: int = MAX_TRANSCRIPT_CHARS,
) -> str:
    """Lay out a transcript for research use, capped at ``max_chars``."""
    if len(transcript_text) > max_chars:
        transcript_text = (
            transcript_text[:max_chars]
            + f"\n\n[Transcript truncated at {max_chars} characters...]"
        )

    lines = [
        f"# YouTube Video Transcript ({video_id})",
        "",
        f"**Video URL**: {video_url(video_id)}",
    ]
    if language:
        lines.append(f"**Language**: {language}")
    lines.extend(["", "## Transcript", "", transcript_text])
    return "\n".join(lines)


class CaptionsStrategy(ExtractionStrategy):
    """Fetch published captions, preferring manual over auto-generated."""

    kind = SourceKind.VIDEO
    confidence = Confidence.PRIMARY

    def __init__(
        self,
        languages: Optional[List[str]] = None,
        max_transcript_chars: int = MAX_TRANSCRIPT_CHARS,
        api_factory: Callable[[], Any] = YouTubeTranscriptApi,
    ):
        self.languages = list(languages or ["en"])
        self.max_transcript_chars = max_transcript_chars
        self._api_factory = api_factory

    @property
    def strategy_id(self) -> str:
        return CAPTIONS

    def _languages_for(self, hints: Dict[str, Any]) -> List[str]:
        language = hints.get("language")
        if language and language not in self.languages:
            return [language] + self.languages
        return self.languages

    def _fetch_segments(self, video_id: str, languages: List[str]):
        """Blocking transcript lookup; returns (segments, language_code, generated)."""
        try:
            transcript_list = self._api_factory().list(video_id)

            try:
                transcript = transcript_list.find_manually_created_transcript(languages)
            except NoTranscriptFound:
                try:
                    transcript = transcript_list.find_generated_transcript(languages)
                except NoTranscriptFound:
                    # Any language beats none; callers can translate downstream
                    available = list(transcript_list)
                    if not available:
                        raise
                    transcript = available[0]

            fetched = transcript.fetch()
            return (
                fetched.to_raw_data(),
                transcript.language_code,
                transcript.is_generated,
            )
        except (RequestBlocked, YouTubeRequestFailed) as e:
            raise TransientNetworkError(f"YouTube request failed: {e}") from e
        except (NoTranscriptFound, TranscriptsDisabled, VideoUnavailable) as e:
            raise SourceUnavailableError(
                f"No captions available for {video_id}: {type(e).__name__}"
            ) from e
        except CouldNotRetrieveTranscript as e:
            raise SourceUnavailableError(
                f"Could not retrieve captions for {video_id}: {type(e).__name__}"
            ) from e

    async def extract(
        self, reference: str, hints: Dict[str, Any], budget: float
    ) -> RawResult:
        if not is_video_id(reference):
            raise SourceUnavailableError(
                f"Captions need a YouTube video id, got: {reference}"
            )
        logger.info(f"Fetching captions for video: {reference}")
        loop = asyncio.get_running_loop()
        segments, language, generated = await asyncio.wait_for(
            loop.run_in_executor(
                None, self._fetch_segments, reference, self._languages_for(hints)
            ),
            timeout=budget,
        )

        transcript_text = " ".join(
            segment["text"].strip() for segment in segments if segment.get("text")
        )
        transcript_text = re.sub(r"\s+", " ", transcript_text).strip()
        if not transcript_text:
            raise EmptyContentError(f"Captions for {reference} are empty")

        logger.info(
            f"Captions for {reference}: {len(segments)} segments, "
            f"{len(transcript_text)} chars ({language})"
        )
        return RawResult(
            body=format_transcript(
                reference, transcript_text, language, self.max_transcript_chars
            ),
            strategy_id=self.strategy_id,
            confidence=self.confidence,
            title=f"YouTube Video Transcript ({reference})",
            metadata={
                "language": language,
                "auto_generated": generated,
                "segments": len(segments),
                "url": video_url(reference),
            },
        )
