"""Map strategy exceptions onto the fixed failure taxonomy."""

import asyncio
import socket
from typing import Optional

import aiohttp

from sourcefetch.core.errors import (
    EmptyContentError,
    Failure,
    FailureKind,
    HTTPStatusError,
    SourceUnavailableError,
    StrategyConfigurationError,
    TransientNetworkError,
)

UNAVAILABLE_STATUSES = frozenset({404, 410})
CONFIGURATION_STATUSES = frozenset({401, 403})


def _http_status(error: BaseException) -> Optional[int]:
    if isinstance(error, HTTPStatusError):
        return error.status
    if isinstance(error, aiohttp.ClientResponseError):
        return error.status
    return None


def classify(error: BaseException, strategy_id: Optional[str] = None) -> Failure:
    """Classify an exception raised by a strategy attempt.

    Rules are checked in order and the first match wins, so the result is
    deterministic for any exception.

    Args:
        error: Exception raised by the attempt
        strategy_id: Strategy that raised it

    Returns:
        Failure with the matching kind
    """
    message = str(error) or type(error).__name__
    status = _http_status(error)

    # TimeoutError subclasses OSError, so it must be checked first
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, asyncio.CancelledError)):
        kind = FailureKind.TIMEOUT
    elif isinstance(error, SourceUnavailableError) or status in UNAVAILABLE_STATUSES:
        kind = FailureKind.UNSUPPORTED_SOURCE
    elif (
        isinstance(
            error,
            (
                TransientNetworkError,
                aiohttp.ClientConnectionError,
                aiohttp.ClientPayloadError,
                ConnectionError,
                socket.gaierror,
            ),
        )
        or (status is not None and (status >= 500 or status == 429))
    ):
        kind = FailureKind.TRANSIENT_NETWORK
    elif (
        isinstance(error, StrategyConfigurationError)
        or status in CONFIGURATION_STATUSES
    ):
        kind = FailureKind.CONFIGURATION
    elif isinstance(error, EmptyContentError):
        kind = FailureKind.EMPTY_CONTENT
    else:
        kind = FailureKind.UNKNOWN

    return Failure(kind=kind, message=message, strategy_id=strategy_id)
