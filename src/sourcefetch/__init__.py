"""
source-fetch: External Content Acquisition Pipeline

Turns unreliable third-party sources (video captions, websites, uploaded
documents) into bounded, research-grade text, escalating through fallback
strategies and reporting clearly when nothing usable could be obtained.
"""

from sourcefetch.core.cancellation import CancellationToken
from sourcefetch.core.errors import (
    AcquisitionError,
    Failure,
    FailureKind,
    PipelineConfigError,
)
from sourcefetch.core.orchestrator import AcquisitionOrchestrator, AcquisitionResult
from sourcefetch.core.source import (
    Confidence,
    NormalizedDocument,
    SourceDescriptor,
    SourceKind,
)
from sourcefetch.services.acquisition_service import AcquisitionService

__version__ = "0.1.0"

__all__ = [
    # Service
    "AcquisitionService",
    "AcquisitionOrchestrator",
    "AcquisitionResult",
    # Model
    "SourceDescriptor",
    "SourceKind",
    "Confidence",
    "NormalizedDocument",
    # Errors
    "AcquisitionError",
    "PipelineConfigError",
    "Failure",
    "FailureKind",
    "CancellationToken",
]
