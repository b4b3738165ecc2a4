"""Failure taxonomy and exception hierarchy for the acquisition pipeline."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class FailureKind(str, Enum):
    """Classified reason a strategy attempt did not produce content."""

    TIMEOUT = "timeout"
    TRANSIENT_NETWORK = "transient-network"
    CONFIGURATION = "configuration"
    UNSUPPORTED_SOURCE = "unsupported-source"
    EMPTY_CONTENT = "empty-content"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in (
            FailureKind.TIMEOUT,
            FailureKind.TRANSIENT_NETWORK,
            FailureKind.UNKNOWN,
        )

    @property
    def retry_limit(self) -> Optional[int]:
        """Maximum retries allowed for this kind (None means max_attempts bound)."""
        if self in (FailureKind.TIMEOUT, FailureKind.UNKNOWN):
            return 1
        if self == FailureKind.TRANSIENT_NETWORK:
            return None
        return 0


@dataclass
class Failure:
    """Classified failure of one strategy attempt."""

    kind: FailureKind
    message: str
    strategy_id: Optional[str] = None
    canceled: bool = False

    @property
    def retryable(self) -> bool:
        return self.kind.retryable and not self.canceled

    def describe(self) -> str:
        """Short ``strategy: kind (message)`` form used in error reports."""
        prefix = f"{self.strategy_id}: " if self.strategy_id else ""
        detail = f" ({self.message})" if self.message else ""
        return f"{prefix}{self.kind.value}{detail}"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "strategy_id": self.strategy_id,
            "canceled": self.canceled,
            "retryable": self.retryable,
        }


class SourceFetchError(Exception):
    """Base class for all source-fetch errors."""


class ExtractionError(SourceFetchError):
    """Raised by a strategy when an extraction call fails."""


class SourceUnavailableError(ExtractionError):
    """The source exists but has no content for this strategy.

    Examples: captions disabled, page gone, unsupported file format.
    """


class TransientNetworkError(ExtractionError):
    """Connection reset, DNS failure or upstream 5xx."""


class StrategyConfigurationError(ExtractionError):
    """Strategy cannot run because of missing or rejected credentials/settings."""


class EmptyContentError(ExtractionError):
    """The call succeeded but returned nothing usable."""


class HTTPStatusError(ExtractionError):
    """Non-success HTTP status returned by an upstream service."""

    def __init__(self, status: int, url: str = "", message: str = ""):
        self.status = status
        self.url = url
        super().__init__(message or f"HTTP {status}" + (f" for {url}" if url else ""))


class PipelineConfigError(SourceFetchError):
    """Invalid chain or strategy setup, detected when the pipeline is built."""


class AcquisitionError(SourceFetchError):
    """Every strategy in the chain failed and nothing usable was produced."""

    def __init__(
        self,
        message: str,
        failures: Optional[List[Failure]] = None,
        canceled: bool = False,
    ):
        super().__init__(message)
        self.failures = list(failures or [])
        self.canceled = canceled
