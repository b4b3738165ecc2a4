"""Validate raw strategy output and normalize it into a document."""

import html
import logging
import re
from enum import Enum
from typing import Optional, Tuple

from sourcefetch.core.constants import MAX_BODY_CHARS, MIN_CONTENT_CHARS
from sourcefetch.core.errors import Failure, FailureKind
from sourcefetch.core.source import (
    Confidence,
    NormalizedDocument,
    RawResult,
    SourceDescriptor,
    SourceMetadata,
)

logger = logging.getLogger(__name__)

# Magic numbers of formats that must never reach a document body
BINARY_SIGNATURES = (
    b"%PDF-",
    b"PK\x03\x04",  # zip, docx, xlsx
    b"\x89PNG",
    b"\xff\xd8\xff",  # jpeg
    b"\x1f\x8b",  # gzip
    b"\x7fELF",
)

# Signatures that are also plain words; only checked on undecoded bytes
WORD_SIGNATURES = (
    b"GIF8",
    b"OggS",
    b"RIFF",
    b"ID3",
)

BASE64_RUN = r"[A-Za-z0-9+/=]{%d,}"
ZERO_WIDTH = re.compile(r"[\u200b\u200c\u200d\u2060\ufeff]")
HEADING = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)
TRUNCATION_NOTICE = "\n\n[Content truncated for length...]"
MAX_TITLE_CHARS = 120


class RejectReason(str, Enum):
    """Why a raw result was not accepted."""

    EMPTY = "empty"
    TOO_SHORT = "too_short"
    BINARY = "binary"

    @property
    def failure_kind(self) -> FailureKind:
        if self == RejectReason.BINARY:
            return FailureKind.UNSUPPORTED_SOURCE
        return FailureKind.EMPTY_CONTENT


class ContentValidator:
    """Reject garbled or empty content and clean up the rest."""

    def __init__(
        self,
        min_content_chars: int = MIN_CONTENT_CHARS,
        max_body_chars: int = MAX_BODY_CHARS,
        max_non_text_ratio: float = 0.3,
        base64_run_chars: int = 100,
    ):
        self.min_content_chars = min_content_chars
        self.max_body_chars = max_body_chars
        self.max_non_text_ratio = max_non_text_ratio
        self._base64_run = re.compile(BASE64_RUN % base64_run_chars)

    def check(self, raw: RawResult) -> Optional[RejectReason]:
        """Return the rejection reason for ``raw``, or None if it is acceptable."""
        body = raw.body
        raw_bytes = isinstance(body, bytes)
        if raw_bytes:
            head = body[:16]
        else:
            head = (body or "")[:16].encode("utf-8", errors="replace")

        if self._has_binary_signature(head, raw_bytes):
            return RejectReason.BINARY

        text = raw.text()
        stripped = text.strip()
        if not stripped:
            return RejectReason.EMPTY
        if self._non_text_ratio(stripped) > self.max_non_text_ratio:
            return RejectReason.BINARY
        if self._base64_ratio(stripped) > 0.5:
            return RejectReason.BINARY
        if len(stripped) < self.min_content_chars:
            return RejectReason.TOO_SHORT
        return None

    @staticmethod
    def _has_binary_signature(head: bytes, raw_bytes: bool = False) -> bool:
        if any(head.startswith(sig) for sig in BINARY_SIGNATURES):
            return True
        if not raw_bytes:
            return False
        if any(head.startswith(sig) for sig in WORD_SIGNATURES):
            return True
        # MP4/MOV: box size then "ftyp"
        return head[4:8] == b"ftyp"

    @staticmethod
    def _non_text_ratio(text: str) -> float:
        bad = sum(
            1
            for ch in text
            if ch == "\ufffd" or (not ch.isprintable() and ch not in "\n\r\t")
        )
        return bad / len(text)

    def _base64_ratio(self, text: str) -> float:
        covered = sum(len(m.group(0)) for m in self._base64_run.finditer(text))
        return covered / len(text)

    def failure_for(self, raw: RawResult, reason: RejectReason) -> Failure:
        """Failure recorded when a strategy's output is rejected."""
        return Failure(
            kind=reason.failure_kind,
            message=f"content rejected by validator: {reason.value}",
            strategy_id=raw.strategy_id,
        )

    def clean(self, text: str) -> str:
        """Decode entities, strip invisible characters and tidy whitespace."""
        text = html.unescape(text)
        text = ZERO_WIDTH.sub("", text)
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = re.sub(r"[ \t\f\v]+", " ", text)
        text = re.sub(r" +\n", "\n", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()

    def normalize(
        self,
        raw: RawResult,
        descriptor: SourceDescriptor,
        confidence: Optional[Confidence] = None,
    ) -> NormalizedDocument:
        """Build a NormalizedDocument from ``raw`` without validating it."""
        body = self.clean(raw.text())
        if len(body) > self.max_body_chars:
            logger.warning(
                f"Content from {raw.strategy_id} truncated from {len(body)} "
                f"to {self.max_body_chars} chars"
            )
            body = body[: self.max_body_chars] + TRUNCATION_NOTICE

        summary = self.clean(raw.summary) if raw.summary else None

        return NormalizedDocument(
            title=self._title(raw, body, descriptor),
            body=body,
            summary=summary or None,
            source_metadata=SourceMetadata(
                kind=descriptor.kind,
                reference=descriptor.reference,
                strategy_used=raw.strategy_id,
                confidence=confidence or raw.confidence,
                extra=dict(raw.metadata),
            ),
        )

    def validate(
        self, raw: RawResult, descriptor: SourceDescriptor
    ) -> Tuple[Optional[NormalizedDocument], bool]:
        """Validate and normalize.

        Returns:
            Tuple of (document, ok); document is None when ok is False
        """
        reason = self.check(raw)
        if reason is not None:
            logger.warning(
                f"Rejected output of {raw.strategy_id} for "
                f"{descriptor.reference}: {reason.value}"
            )
            return None, False
        return self.normalize(raw, descriptor), True

    def _title(self, raw: RawResult, body: str, descriptor: SourceDescriptor) -> str:
        if raw.title and raw.title.strip():
            return self.clean(raw.title)[:MAX_TITLE_CHARS]
        match = HEADING.search(body)
        if match:
            return match.group(1)[:MAX_TITLE_CHARS]
        first_line = body.split("\n", 1)[0].strip() if body else ""
        if first_line:
            return first_line[:MAX_TITLE_CHARS]
        return f"{descriptor.kind.value}: {descriptor.reference}"
