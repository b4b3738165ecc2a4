"""Bounded retry with exponential backoff for a single strategy.

The controller owns the per-attempt budget and the backoff schedule. It never
escalates to another strategy; it returns either a raw result or the last
classified failure and leaves escalation to the orchestrator.
"""

import asyncio
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Tuple

from sourcefetch.core.cancellation import CancellationToken
from sourcefetch.core.classifier import classify
from sourcefetch.core.constants import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
    MAX_ATTEMPTS_CEILING,
)
from sourcefetch.core.errors import Failure, FailureKind
from sourcefetch.core.source import Attempt, RawResult, SourceDescriptor

logger = logging.getLogger(__name__)

AttemptCallback = Callable[[Attempt, Optional[RawResult], Optional[Failure]], None]


class _Canceled(Exception):
    """Internal signal: the cancellation token fired during an attempt."""


def _consume_result(task: "asyncio.Future") -> None:
    # Abandoned attempt tasks must not log "exception was never retrieved"
    if not task.cancelled():
        task.exception()


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before the retry that follows failed attempt ``attempt`` (1-indexed)."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


class RetryController:
    """Drive bounded attempts of one strategy."""

    def __init__(
        self,
        max_delay: float = DEFAULT_MAX_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_delay = max_delay
        self._sleep = sleep

    async def run(
        self,
        strategy,
        descriptor: SourceDescriptor,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        budget: Optional[float] = None,
        cancel: Optional[CancellationToken] = None,
        on_attempt: Optional[AttemptCallback] = None,
    ) -> Tuple[Optional[RawResult], Optional[Failure]]:
        """Run ``strategy`` until it succeeds or its retry allowance is spent.

        Args:
            strategy: ExtractionStrategy to invoke
            descriptor: Source being fetched
            max_attempts: Total attempts allowed (1..10)
            base_delay: First backoff delay in seconds
            budget: Per-attempt timeout in seconds
            cancel: Token that aborts the in-flight attempt or sleep
            on_attempt: Called after every attempt with its outcome

        Returns:
            Tuple of (raw_result, failure); exactly one is not None
        """
        if not 1 <= max_attempts <= MAX_ATTEMPTS_CEILING:
            raise ValueError(
                f"max_attempts must be between 1 and {MAX_ATTEMPTS_CEILING}, "
                f"got {max_attempts}"
            )
        if budget is None or budget <= 0:
            raise ValueError(f"budget must be a positive number, got {budget!r}")

        strategy_id = strategy.strategy_id
        retries_by_kind: Counter = Counter()
        failure: Optional[Failure] = None

        for attempt_number in range(1, max_attempts + 1):
            if cancel is not None and cancel.is_cancelled:
                return None, self._canceled_failure(strategy_id, cancel)

            attempt = Attempt(
                strategy_id=strategy_id,
                source_ref=descriptor.reference,
                started_at=datetime.now(timezone.utc),
                budget=budget,
                attempt_number=attempt_number,
            )
            logger.debug(
                f"{strategy_id} attempt {attempt_number}/{max_attempts} "
                f"for {descriptor.reference} (budget {budget}s)"
            )

            try:
                raw = await self._attempt(
                    strategy.extract(descriptor.reference, descriptor.hints, budget),
                    budget,
                    cancel,
                )
            except _Canceled:
                failure = self._canceled_failure(strategy_id, cancel)
                self._notify(on_attempt, attempt, None, failure)
                return None, failure
            except (Exception, asyncio.CancelledError) as e:
                if isinstance(e, asyncio.CancelledError) and _current_task_cancelling():
                    raise
                failure = classify(e, strategy_id)
                self._notify(on_attempt, attempt, None, failure)
            else:
                self._notify(on_attempt, attempt, raw, None)
                return raw, None

            logger.warning(
                f"{strategy_id} attempt {attempt_number} failed: "
                f"{failure.kind.value} ({failure.message})"
            )

            if not self._may_retry(failure, attempt_number, max_attempts, retries_by_kind):
                break

            retries_by_kind[failure.kind] += 1
            delay = backoff_delay(attempt_number, base_delay, self.max_delay)
            logger.info(f"Retrying {strategy_id} in {delay:.2f}s")
            if not await self._backoff(delay, cancel):
                return None, self._canceled_failure(strategy_id, cancel)

        return None, failure

    @staticmethod
    def _may_retry(
        failure: Failure, attempt_number: int, max_attempts: int, retries: Counter
    ) -> bool:
        if not failure.retryable or attempt_number >= max_attempts:
            return False
        limit = failure.kind.retry_limit
        return limit is None or retries[failure.kind] < limit

    @staticmethod
    def _notify(
        callback: Optional[AttemptCallback],
        attempt: Attempt,
        raw: Optional[RawResult],
        failure: Optional[Failure],
    ) -> None:
        if callback is not None:
            callback(attempt, raw, failure)

    @staticmethod
    def _canceled_failure(
        strategy_id: str, cancel: Optional[CancellationToken]
    ) -> Failure:
        reason = cancel.reason if cancel is not None and cancel.reason else "canceled"
        return Failure(
            kind=FailureKind.TIMEOUT,
            message=reason,
            strategy_id=strategy_id,
            canceled=True,
        )

    async def _attempt(
        self,
        coro: Awaitable[RawResult],
        budget: float,
        cancel: Optional[CancellationToken],
    ) -> RawResult:
        """Await one attempt, bounded by ``budget`` and aborted by ``cancel``."""
        task = asyncio.ensure_future(coro)
        waiter = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        pending = {task} if waiter is None else {task, waiter}
        try:
            done, _ = await asyncio.wait(
                pending, timeout=budget, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for fut in (task, waiter):
                if fut is not None and not fut.done():
                    fut.cancel()
            task.add_done_callback(_consume_result)

        if task in done:
            return task.result()
        if cancel is not None and cancel.is_cancelled:
            raise _Canceled()
        raise asyncio.TimeoutError(f"exceeded {budget}s budget")

    async def _backoff(self, delay: float, cancel: Optional[CancellationToken]) -> bool:
        """Sleep ``delay`` seconds; return False if canceled meanwhile."""
        if cancel is None:
            await self._sleep(delay)
            return True
        if cancel.is_cancelled:
            return False

        sleeper = asyncio.ensure_future(self._sleep(delay))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for fut in (sleeper, waiter):
                if not fut.done():
                    fut.cancel()
        return not cancel.is_cancelled


def _current_task_cancelling() -> bool:
    """True when the task running the controller itself is being cancelled."""
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0
