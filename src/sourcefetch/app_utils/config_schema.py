"""Configuration schema and default values for source-fetch."""

from dataclasses import asdict, dataclass, field, fields
from typing import Dict, List, Optional

from sourcefetch.core.constants import (
    CSV_PREVIEW_ROWS,
    DEFAULT_BASE_DELAY,
    DEFAULT_CHAINS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
    MAX_ATTEMPTS_CEILING,
    MAX_BODY_CHARS,
    MAX_FILE_BYTES,
    MAX_TRANSCRIPT_CHARS,
    MIN_CONTENT_CHARS,
)


def _filter(cls_, data_: Optional[dict]) -> dict:
    """Filter dict to only include known dataclass fields."""
    known = {f.name for f in fields(cls_)}
    return {k: v for k, v in (data_ or {}).items() if k in known}


def _check_attempts(name: str, value: int) -> None:
    if not 1 <= value <= MAX_ATTEMPTS_CEILING:
        raise ValueError(
            f"{name} must be between 1 and {MAX_ATTEMPTS_CEILING}, got {value}"
        )


@dataclass
class RetryConfig:
    """Retry defaults applied to every strategy without its own override."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY  # seconds, doubles per retry
    max_delay: float = DEFAULT_MAX_DELAY

    def __post_init__(self):
        """Validate configuration values."""
        _check_attempts("max_attempts", self.max_attempts)
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.max_delay < self.base_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})"
            )


@dataclass
class ValidatorConfig:
    """Content validation thresholds."""

    min_content_chars: int = MIN_CONTENT_CHARS
    max_body_chars: int = MAX_BODY_CHARS
    max_non_text_ratio: float = 0.3
    base64_run_chars: int = 100

    def __post_init__(self):
        if self.min_content_chars < 1:
            raise ValueError(
                f"min_content_chars must be positive, got {self.min_content_chars}"
            )
        if self.max_body_chars < self.min_content_chars:
            raise ValueError("max_body_chars must be >= min_content_chars")
        if not 0.0 < self.max_non_text_ratio <= 1.0:
            raise ValueError(
                f"max_non_text_ratio must be in (0, 1], got {self.max_non_text_ratio}"
            )


@dataclass
class StrategyConfig:
    """Per-strategy overrides; None means use the strategy or retry default."""

    timeout: Optional[float] = None
    max_attempts: Optional[int] = None
    base_delay: Optional[float] = None

    def __post_init__(self):
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.max_attempts is not None:
            _check_attempts("max_attempts", self.max_attempts)


@dataclass
class ChainConfig:
    """Ordered strategy ids tried for each source kind."""

    video: List[str] = field(default_factory=lambda: list(DEFAULT_CHAINS["video"]))
    webpage: List[str] = field(default_factory=lambda: list(DEFAULT_CHAINS["webpage"]))
    document: List[str] = field(
        default_factory=lambda: list(DEFAULT_CHAINS["document"])
    )

    def as_mapping(self) -> Dict[str, List[str]]:
        return {"video": self.video, "webpage": self.webpage, "document": self.document}


@dataclass
class CaptionsConfig:
    """Caption lookup settings."""

    languages: List[str] = field(default_factory=lambda: ["en"])
    max_transcript_chars: int = MAX_TRANSCRIPT_CHARS


@dataclass
class SpeechToTextConfig:
    """External speech-to-text service used by audio transcription.

    Leaving base_url unset disables the strategy; attempts then fail as a
    configuration error and the chain escalates.
    """

    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    language: Optional[str] = None
    max_duration_seconds: int = 600  # 10 minutes of audio

    def __post_init__(self):
        if self.max_duration_seconds <= 0:
            raise ValueError(
                f"max_duration_seconds must be positive, got {self.max_duration_seconds}"
            )


@dataclass
class WebConfig:
    """Webpage crawl settings."""

    max_depth: int = 2
    max_pages: int = 10
    request_delay: float = 0.5  # polite pause between pages, seconds
    max_page_chars: int = 50_000

    def __post_init__(self):
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.max_pages < 1:
            raise ValueError(f"max_pages must be at least 1, got {self.max_pages}")


@dataclass
class DocumentConfig:
    """Uploaded document settings."""

    max_file_bytes: int = MAX_FILE_BYTES
    csv_preview_rows: int = CSV_PREVIEW_ROWS


@dataclass
class SourceFetchConfig:
    """Main configuration for source-fetch."""

    retry: RetryConfig
    validator: ValidatorConfig
    chains: ChainConfig
    strategies: Dict[str, StrategyConfig]
    captions: CaptionsConfig
    speech_to_text: SpeechToTextConfig
    web: WebConfig
    documents: DocumentConfig

    def strategy(self, strategy_id: str) -> StrategyConfig:
        """Overrides for ``strategy_id`` (empty when none are configured)."""
        return self.strategies.get(strategy_id) or StrategyConfig()

    def to_dict(self) -> dict:
        """Convert config to dictionary for YAML serialization."""
        return {
            "retry": asdict(self.retry),
            "validator": asdict(self.validator),
            "chains": asdict(self.chains),
            "strategies": {
                sid: {k: v for k, v in asdict(cfg).items() if v is not None}
                for sid, cfg in self.strategies.items()
            },
            "captions": asdict(self.captions),
            "speech_to_text": asdict(self.speech_to_text),
            "web": asdict(self.web),
            "documents": asdict(self.documents),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SourceFetchConfig":
        """Create config from dictionary (loaded from YAML)."""
        strategies_data = data.get("strategies") or {}

        return cls(
            retry=RetryConfig(**_filter(RetryConfig, data.get("retry"))),
            validator=ValidatorConfig(**_filter(ValidatorConfig, data.get("validator"))),
            chains=ChainConfig(**_filter(ChainConfig, data.get("chains"))),
            strategies={
                sid: StrategyConfig(**_filter(StrategyConfig, cfg))
                for sid, cfg in strategies_data.items()
            },
            captions=CaptionsConfig(**_filter(CaptionsConfig, data.get("captions"))),
            speech_to_text=SpeechToTextConfig(
                **_filter(SpeechToTextConfig, data.get("speech_to_text"))
            ),
            web=WebConfig(**_filter(WebConfig, data.get("web"))),
            documents=DocumentConfig(**_filter(DocumentConfig, data.get("documents"))),
        )

    @classmethod
    def create_default(cls) -> "SourceFetchConfig":
        """Create default configuration."""
        return cls(
            retry=RetryConfig(),
            validator=ValidatorConfig(),
            chains=ChainConfig(),
            strategies={},
            captions=CaptionsConfig(),
            speech_to_text=SpeechToTextConfig(),
            web=WebConfig(),
            documents=DocumentConfig(),
        )
