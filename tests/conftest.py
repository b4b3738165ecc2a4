"""
Pytest configuration and shared fixtures.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import pytest

from sourcefetch.core.result_store import ResultStore
from sourcefetch.core.retry import RetryController
from sourcefetch.core.source import (
    Confidence,
    RawResult,
    SourceDescriptor,
    SourceKind,
)
from sourcefetch.core.validator import ContentValidator
from sourcefetch.strategies.base import ExtractionStrategy

# ============================================================================
# Fake Strategies
# ============================================================================


class ScriptedStrategy(ExtractionStrategy):
    """Strategy that replays a script of outcomes, one per call.

    Each outcome is a body (str/bytes), a RawResult, or an exception to
    raise. The last outcome repeats once the script runs out.
    """

    def __init__(
        self,
        strategy_id: str,
        outcomes: Optional[List[Any]] = None,
        kind: SourceKind = SourceKind.VIDEO,
        confidence: Confidence = Confidence.PRIMARY,
        timeout: Optional[float] = 5.0,
        delay: float = 0.0,
    ):
        self._id = strategy_id
        self.outcomes = list(outcomes or [])
        self.kind = kind
        self.confidence = confidence
        self._timeout = timeout
        self.delay = delay
        self.calls = 0
        self.budgets: List[float] = []
        self.hints: List[Dict[str, Any]] = []
        self.references: List[str] = []

    @property
    def strategy_id(self) -> str:
        return self._id

    @property
    def default_timeout(self) -> Optional[float]:
        return self._timeout

    async def extract(self, reference, hints, budget):
        self.calls += 1
        self.budgets.append(budget)
        self.hints.append(hints)
        self.references.append(reference)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, RawResult):
            return outcome
        return RawResult(body=outcome, strategy_id=self._id, confidence=self.confidence)


@pytest.fixture
def make_strategy():
    """Factory for ScriptedStrategy instances."""
    return ScriptedStrategy


# ============================================================================
# Fake HTTP
# ============================================================================


class FakeResponse:
    """Stand-in for an aiohttp response used as an async context manager."""

    def __init__(
        self,
        status: int = 200,
        body: str = "",
        content_type: str = "text/html; charset=utf-8",
        json_data: Any = None,
    ):
        self.status = status
        self.body = body
        self.headers = {"Content-Type": content_type}
        self.json_data = json_data

    async def text(self):
        return self.body

    async def json(self, content_type=None):
        return self.json_data

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Routes GET/POST by URL; unknown URLs answer 404.

    A route may be a list of responses, served in order; the last one repeats.

    Calling the instance stands in for ``aiohttp.ClientSession(...)`` so it
    can be passed directly as a strategy's ``session_factory``.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes = dict(routes or {})
        self.requests: List[tuple] = []
        self.session_kwargs: Dict[str, Any] = {}

    def __call__(self, **kwargs):
        self.session_kwargs = kwargs
        return self

    def _respond(self, method, url, kwargs):
        self.requests.append((method, url, kwargs))
        route = self.routes.get(url, FakeResponse(status=404))
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, BaseException):
            raise route
        return route

    def get(self, url, **kwargs):
        return self._respond("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._respond("POST", url, kwargs)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


@pytest.fixture
def fake_session():
    """Factory for FakeSession instances."""
    return FakeSession


@pytest.fixture
def fake_response():
    """Factory for FakeResponse instances."""
    return FakeResponse


# ============================================================================
# Pipeline Fixtures
# ============================================================================


@pytest.fixture
def recorded_delays():
    """Backoff delays requested by the retry controller."""
    return []


@pytest.fixture
def retry_controller(recorded_delays):
    """RetryController whose backoff sleeps return immediately."""

    async def fake_sleep(delay):
        recorded_delays.append(delay)

    return RetryController(max_delay=60.0, sleep=fake_sleep)


@pytest.fixture
def validator():
    return ContentValidator()


@pytest.fixture
def store():
    return ResultStore()


@pytest.fixture
def video_descriptor():
    return SourceDescriptor.create("video", "dQw4w9WgXcQ")


@pytest.fixture
def webpage_descriptor():
    return SourceDescriptor.create("webpage", "https://example.com")


@pytest.fixture
def long_text():
    """500 characters of ordinary prose."""
    sentence = "The quick brown fox jumps over the lazy dog near the river bank. "
    return (sentence * 10)[:500]


# ============================================================================
# Sample Content Fixtures
# ============================================================================


@pytest.fixture
def sample_site_html():
    """Landing page with navigation, contact details and noise."""
    return """
    <html>
    <head>
      <title>Acme Widgets</title>
      <meta name="description" content="Acme builds reliable widgets for teams.">
    </head>
    <body>
      <nav><a href="/">Home</a> <a href="/about">About</a></nav>
      <main>
        <h1>Welcome to Acme</h1>
        <p>Acme Widgets has been building reliable widgets for modern teams since 2001.</p>
        <p>Short.</p>
        <p>Our flagship widget costs $49.99 per month and ships worldwide.</p>
        <a href="/blog#latest">Blog</a>
        <a href="/pricing">Pricing</a>
        <a href="mailto:sales@acme.test">Mail</a>
        <a href="https://other.test/page">External</a>
        <a href="/brochure.pdf">Brochure</a>
      </main>
      <footer>
        Contact: hello@acme.test or call (555) 123-4567
        <a href="https://twitter.com/acme">Twitter</a>
      </footer>
    </body>
    </html>
    """


# ============================================================================
# Logging
# ============================================================================


@pytest.fixture
def restore_logging():
    """Put root logging back the way the test runner had it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    aiohttp_level = logging.getLogger("aiohttp").level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("aiohttp").setLevel(aiohttp_level)
