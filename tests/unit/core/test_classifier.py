"""Unit tests for the failure taxonomy and error classifier."""

import asyncio
import socket
from unittest.mock import Mock

import aiohttp
import pytest

from sourcefetch.core.classifier import classify
from sourcefetch.core.errors import (
    EmptyContentError,
    Failure,
    FailureKind,
    HTTPStatusError,
    SourceUnavailableError,
    StrategyConfigurationError,
    TransientNetworkError,
)


def _response_error(status: int) -> aiohttp.ClientResponseError:
    return aiohttp.ClientResponseError(request_info=Mock(), history=(), status=status)


@pytest.mark.unit
class TestFailureKind:
    """Retry policy attached to each failure kind."""

    @pytest.mark.parametrize(
        "kind,retryable",
        [
            (FailureKind.TIMEOUT, True),
            (FailureKind.TRANSIENT_NETWORK, True),
            (FailureKind.UNKNOWN, True),
            (FailureKind.CONFIGURATION, False),
            (FailureKind.UNSUPPORTED_SOURCE, False),
            (FailureKind.EMPTY_CONTENT, False),
        ],
    )
    def test_retryable(self, kind, retryable):
        assert kind.retryable is retryable

    def test_timeout_and_unknown_retried_once(self):
        assert FailureKind.TIMEOUT.retry_limit == 1
        assert FailureKind.UNKNOWN.retry_limit == 1

    def test_transient_bounded_by_max_attempts(self):
        assert FailureKind.TRANSIENT_NETWORK.retry_limit is None

    def test_canceled_failure_is_not_retryable(self):
        failure = Failure(kind=FailureKind.TIMEOUT, message="stop", canceled=True)
        assert not failure.retryable

    def test_describe(self):
        failure = Failure(
            kind=FailureKind.UNSUPPORTED_SOURCE,
            message="captions disabled",
            strategy_id="captions",
        )
        assert failure.describe() == "captions: unsupported-source (captions disabled)"

    def test_http_status_error_message(self):
        error = HTTPStatusError(502, "https://api.test/x")
        assert error.status == 502
        assert "HTTP 502" in str(error)


@pytest.mark.unit
class TestClassify:
    """Deterministic mapping from exceptions to failure kinds."""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (asyncio.TimeoutError(), FailureKind.TIMEOUT),
            (TimeoutError("slow"), FailureKind.TIMEOUT),
            (asyncio.CancelledError(), FailureKind.TIMEOUT),
            (aiohttp.ServerTimeoutError("read timeout"), FailureKind.TIMEOUT),
            (SourceUnavailableError("no captions"), FailureKind.UNSUPPORTED_SOURCE),
            (HTTPStatusError(404), FailureKind.UNSUPPORTED_SOURCE),
            (HTTPStatusError(410), FailureKind.UNSUPPORTED_SOURCE),
            (TransientNetworkError("reset"), FailureKind.TRANSIENT_NETWORK),
            (ConnectionResetError("reset"), FailureKind.TRANSIENT_NETWORK),
            (socket.gaierror("dns"), FailureKind.TRANSIENT_NETWORK),
            (aiohttp.ClientConnectionError("refused"), FailureKind.TRANSIENT_NETWORK),
            (HTTPStatusError(503), FailureKind.TRANSIENT_NETWORK),
            (HTTPStatusError(429), FailureKind.TRANSIENT_NETWORK),
            (StrategyConfigurationError("no key"), FailureKind.CONFIGURATION),
            (HTTPStatusError(401), FailureKind.CONFIGURATION),
            (HTTPStatusError(403), FailureKind.CONFIGURATION),
            (EmptyContentError("nothing"), FailureKind.EMPTY_CONTENT),
            (ValueError("boom"), FailureKind.UNKNOWN),
            (HTTPStatusError(418), FailureKind.UNKNOWN),
        ],
    )
    def test_kinds(self, error, expected):
        assert classify(error).kind == expected

    @pytest.mark.parametrize(
        "status,expected",
        [
            (404, FailureKind.UNSUPPORTED_SOURCE),
            (500, FailureKind.TRANSIENT_NETWORK),
            (403, FailureKind.CONFIGURATION),
        ],
    )
    def test_aiohttp_response_status(self, status, expected):
        assert classify(_response_error(status)).kind == expected

    def test_carries_strategy_and_message(self):
        failure = classify(SourceUnavailableError("gone"), strategy_id="captions")
        assert failure.strategy_id == "captions"
        assert failure.message == "gone"
        assert not failure.retryable

    def test_empty_message_falls_back_to_type_name(self):
        assert classify(asyncio.TimeoutError()).message == "TimeoutError"

    def test_same_input_same_output(self):
        error = TransientNetworkError("reset")
        assert classify(error) == classify(error)
