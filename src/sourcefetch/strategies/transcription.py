"""Audio transcription through an external speech-to-text service.

The service receives the public video URL, downloads and transcribes the
audio itself, and answers with JSON containing a ``text`` field.
"""

import logging
from typing import Any, Callable, Dict, Optional

import aiohttp

from sourcefetch.core.constants import AUDIO_TRANSCRIPTION
from sourcefetch.core.errors import (
    EmptyContentError,
    HTTPStatusError,
    SourceUnavailableError,
    StrategyConfigurationError,
)
from sourcefetch.core.source import Confidence, RawResult, SourceKind
from sourcefetch.strategies.base import ExtractionStrategy
from sourcefetch.utils.youtube import video_url

logger = logging.getLogger(__name__)

TRANSCRIPTIONS_PATH = "/v1/transcriptions"

# 413: media longer than the service accepts; 422: no audio track
UNAVAILABLE_STATUSES = (404, 413, 422)


class AudioTranscriptionStrategy(ExtractionStrategy):
    """Transcribe a video's audio with a configured speech-to-text service."""

    kind = SourceKind.VIDEO
    confidence = Confidence.FALLBACK

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        language: Optional[str] = None,
        max_duration_seconds: int = 600,
        session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.model = model
        self.language = language
        self.max_duration_seconds = max_duration_seconds
        self._session_factory = session_factory

    @property
    def strategy_id(self) -> str:
        return AUDIO_TRANSCRIPTION

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _payload(self, reference: str, hints: Dict[str, Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "url": video_url(reference),
            "max_duration_seconds": self.max_duration_seconds,
        }
        language = hints.get("language") or self.language
        if language:
            payload["language"] = language
        if self.model:
            payload["model"] = self.model
        return payload

    async def extract(
        self, reference: str, hints: Dict[str, Any], budget: float
    ) -> RawResult:
        if not self.base_url:
            raise StrategyConfigurationError(
                "Speech-to-text service URL is not configured "
                "(speech_to_text.base_url or SOURCEFETCH_STT_URL)"
            )

        endpoint = f"{self.base_url}{TRANSCRIPTIONS_PATH}"
        logger.info(f"Requesting transcription of {reference} from {endpoint}")

        timeout = aiohttp.ClientTimeout(total=budget)
        async with self._session_factory(timeout=timeout) as session:
            async with session.post(
                endpoint, json=self._payload(reference, hints), headers=self._headers()
            ) as response:
                if response.status in (401, 403):
                    raise StrategyConfigurationError(
                        f"Speech-to-text service rejected credentials "
                        f"(HTTP {response.status})"
                    )
                if response.status in UNAVAILABLE_STATUSES:
                    detail = await response.text()
                    raise SourceUnavailableError(
                        f"Audio not transcribable (HTTP {response.status}): "
                        f"{detail[:200]}"
                    )
                if response.status != 200:
                    raise HTTPStatusError(response.status, endpoint)
                data = await response.json(content_type=None)

        text = (data or {}).get("text") or ""
        if not text.strip():
            raise EmptyContentError(f"Transcription of {reference} returned no text")

        duration = data.get("duration")
        logger.info(f"Transcribed {reference}: {len(text)} chars")
        return RawResult(
            body=text,
            strategy_id=self.strategy_id,
            confidence=self.confidence,
            title=data.get("title") or f"YouTube Video Transcription ({reference})",
            metadata={
                "url": video_url(reference),
                "language": data.get("language"),
                "duration_seconds": duration,
            },
        )
