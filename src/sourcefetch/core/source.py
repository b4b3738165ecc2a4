"""Source model shared by the orchestrator, strategies and result store.

A ``SourceDescriptor`` names what is being fetched, a ``RawResult`` is what a
strategy hands back, and a ``NormalizedDocument`` is what callers receive.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from sourcefetch.utils.html import normalize_url
from sourcefetch.utils.youtube import extract_video_id


class SourceKind(str, Enum):
    """Kind of external source."""

    VIDEO = "video"
    WEBPAGE = "webpage"
    DOCUMENT = "document"


class Confidence(str, Enum):
    """How much a caller should trust extracted content."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    DEGRADED = "degraded"  # Placeholder or partial content


SourceKey = Tuple[SourceKind, str]


@dataclass(frozen=True)
class SourceDescriptor:
    """Identifies one external source.

    Use ``SourceDescriptor.create`` to build descriptors from user input; it
    canonicalises the reference so that two spellings of the same video or
    page share a single result store entry.
    """

    kind: SourceKind
    reference: str
    hints: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def key(self) -> SourceKey:
        """Result store key for this source."""
        return (self.kind, self.reference)

    @classmethod
    def create(
        cls,
        kind: Union[SourceKind, str],
        reference: str,
        hints: Optional[Dict[str, Any]] = None,
    ) -> "SourceDescriptor":
        """Create a descriptor with a canonical reference.

        Args:
            kind: Source kind (enum member or its string value)
            reference: Video id or URL, page URL, or document path
            hints: Optional advisory hints (language, max_depth, ...)

        Returns:
            SourceDescriptor

        Raises:
            ValueError: If the reference is empty, or a webpage reference is
                not an http(s) URL.
        """
        kind = SourceKind(kind)
        reference = (reference or "").strip()
        if not reference:
            raise ValueError(f"Empty reference for {kind.value} source")

        if kind == SourceKind.VIDEO:
            # YouTube spellings collapse to the id; other references are opaque
            reference = extract_video_id(reference) or reference
        elif kind == SourceKind.WEBPAGE:
            reference = normalize_url(reference)

        return cls(kind=kind, reference=reference, hints=dict(hints or {}))


@dataclass
class Attempt:
    """One invocation of one strategy for one source."""

    strategy_id: str
    source_ref: str
    started_at: datetime
    budget: float
    attempt_number: int


@dataclass
class RawResult:
    """Unvalidated strategy output."""

    body: Union[str, bytes]
    strategy_id: str
    confidence: Confidence = Confidence.PRIMARY
    title: Optional[str] = None
    summary: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def text(self) -> str:
        """Body as text; bytes are decoded as UTF-8 with replacement."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8", errors="replace")
        return self.body or ""


@dataclass
class SourceMetadata:
    """Provenance of a normalized document."""

    kind: SourceKind
    reference: str
    strategy_used: str
    confidence: Confidence
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind.value,
            "reference": self.reference,
            "strategy_used": self.strategy_used,
            "confidence": self.confidence.value,
            **self.extra,
        }


@dataclass
class NormalizedDocument:
    """Cleaned, bounded-size text artifact handed to the rest of the app."""

    title: str
    body: str
    source_metadata: SourceMetadata
    summary: Optional[str] = None
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def confidence(self) -> Confidence:
        return self.source_metadata.confidence

    @property
    def strategy_used(self) -> str:
        return self.source_metadata.strategy_used

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "title": self.title,
            "body": self.body,
            "summary": self.summary,
            "source_metadata": self.source_metadata.to_dict(),
            "extracted_at": self.extracted_at.isoformat(),
        }

    def to_markdown(self) -> str:
        """Render as a markdown document with a provenance comment."""
        meta = self.source_metadata
        lines = [
            f"# {self.title}",
            "",
            f"<!-- Source: {meta.kind.value} {meta.reference} -->",
            f"<!-- Strategy: {meta.strategy_used} ({meta.confidence.value}) -->",
            "",
        ]
        if self.summary:
            lines.extend([f"> {self.summary}", ""])
        lines.append(self.body)
        return "\n".join(lines)
