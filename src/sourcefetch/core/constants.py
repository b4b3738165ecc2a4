"""Core constants for source-fetch.

This module defines shared constants used across the pipeline so strategy
ids, default budgets and limits are spelled in exactly one place.
"""

# Strategy identifiers
CAPTIONS = "captions"
"""Caption/transcript lookup for videos (primary video strategy)."""

AUDIO_TRANSCRIPTION = "audio-transcription"
"""Speech-to-text transcription of a video's audio track."""

METADATA_PLACEHOLDER = "metadata-placeholder"
"""Templated placeholder built from public video page metadata.

Always produces degraded-confidence output and never short-circuits a chain.
"""

COMPREHENSIVE_SCRAPE = "comprehensive-scrape"
"""Shallow same-site crawl of a webpage and its most relevant sub-pages."""

BASIC_SCRAPE = "basic-scrape"
"""Single-page HTML to markdown conversion."""

FORMAT_PARSER = "format-parser"
"""Text extraction from an uploaded document (PDF, DOCX, CSV, text)."""

# Default per-strategy timeouts (seconds)
DEFAULT_STRATEGY_TIMEOUTS = {
    CAPTIONS: 30.0,
    AUDIO_TRANSCRIPTION: 60.0,
    METADATA_PLACEHOLDER: 15.0,
    COMPREHENSIVE_SCRAPE: 60.0,
    BASIC_SCRAPE: 30.0,
    FORMAT_PARSER: 45.0,
}
"""Per-attempt budget used when a strategy has no configured timeout."""

# Default escalation chains per source kind
DEFAULT_CHAINS = {
    "video": [CAPTIONS, AUDIO_TRANSCRIPTION, METADATA_PLACEHOLDER],
    "webpage": [COMPREHENSIVE_SCRAPE, BASIC_SCRAPE],
    "document": [FORMAT_PARSER],
}
"""Ordered strategy ids tried for each source kind."""

# Retry defaults
DEFAULT_MAX_ATTEMPTS = 2
"""Attempts per strategy before escalating (first try plus one retry)."""

DEFAULT_BASE_DELAY = 1.0
"""Initial backoff delay in seconds; doubles on every further retry."""

DEFAULT_MAX_DELAY = 10.0
"""Upper bound for a single backoff sleep in seconds."""

MAX_ATTEMPTS_CEILING = 10
"""Largest accepted max_attempts value. Unbounded retry is not allowed."""

# Content limits
MIN_CONTENT_CHARS = 10
"""Trimmed bodies shorter than this are rejected as too short."""

MAX_BODY_CHARS = 500_000
"""Normalized bodies are truncated beyond this many characters."""

MAX_TRANSCRIPT_CHARS = 15_000
"""Caption transcripts are capped at this length for research use."""

SUMMARY_CHARS = 500
"""Length of generated excerpt summaries."""

MAX_FILE_BYTES = 10 * 1024 * 1024
"""Uploaded documents above this size are refused."""

CSV_PREVIEW_ROWS = 20
"""Number of CSV rows included in a document preview."""

MAX_CRAWL_DEPTH = 5
"""Deepest crawl a ``max_depth`` hint may request."""
