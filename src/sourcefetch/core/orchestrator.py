"""Strategy orchestration: escalate through a chain until something sticks.

For each source kind the orchestrator holds an ordered chain of strategies.
Each strategy gets its own bounded retries through the RetryController;
terminal failures and validator rejections escalate to the next strategy.
When the chain is exhausted the best partial candidate, if any, is returned
as a degraded document; otherwise a single AcquisitionError reports the most
specific failure of every strategy tried.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sourcefetch.core.cancellation import CancellationToken
from sourcefetch.core.constants import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    MAX_ATTEMPTS_CEILING,
)
from sourcefetch.core.errors import (
    AcquisitionError,
    Failure,
    FailureKind,
    PipelineConfigError,
)
from sourcefetch.core.result_store import (
    AcquisitionStatus,
    AttemptOutcome,
    AttemptRecord,
    ResultStore,
)
from sourcefetch.core.retry import RetryController
from sourcefetch.core.source import (
    Attempt,
    Confidence,
    NormalizedDocument,
    RawResult,
    SourceDescriptor,
    SourceKind,
)
from sourcefetch.core.validator import ContentValidator, RejectReason
from sourcefetch.strategies.base import ExtractionStrategy

logger = logging.getLogger(__name__)


@dataclass
class ChainStep:
    """One strategy in a chain, with its own retry and timeout settings."""

    strategy: ExtractionStrategy
    timeout: Optional[float] = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY

    @property
    def strategy_id(self) -> str:
        return self.strategy.strategy_id


@dataclass
class AcquisitionResult:
    """Caller-facing outcome of a successful or degraded acquisition."""

    document: NormalizedDocument
    degraded: bool = False
    note: Optional[str] = None
    failures: List[Failure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "document": self.document.to_dict(),
            "degraded": self.degraded,
            "note": self.note,
            "failures": [f.to_dict() for f in self.failures],
        }


def most_specific_failure(failures: List[Failure]) -> Failure:
    """Last classified failure, preferring anything over ``unknown``."""
    for failure in reversed(failures):
        if failure.kind != FailureKind.UNKNOWN:
            return failure
    return failures[-1]


def summarize_failures(failures: List[Failure]) -> str:
    """``strategy: kind (message)`` per strategy, in escalation order."""
    by_strategy: Dict[str, List[Failure]] = {}
    for failure in failures:
        by_strategy.setdefault(failure.strategy_id or "?", []).append(failure)
    return "; ".join(
        most_specific_failure(group).describe() for group in by_strategy.values()
    )


class AcquisitionOrchestrator:
    """Drive the strategy chain for a source kind."""

    def __init__(
        self,
        chains: Dict[SourceKind, List[ChainStep]],
        validator: Optional[ContentValidator] = None,
        store: Optional[ResultStore] = None,
        retry: Optional[RetryController] = None,
    ):
        self.validator = validator or ContentValidator()
        self.store = store or ResultStore()
        self.retry = retry or RetryController()
        self._chains = {
            SourceKind(kind): self._check_chain(SourceKind(kind), steps)
            for kind, steps in chains.items()
        }

    @staticmethod
    def _check_chain(kind: SourceKind, steps: List[ChainStep]) -> List[ChainStep]:
        """Resolve timeouts and reject chains that cannot run."""
        if not steps:
            raise PipelineConfigError(f"Empty strategy chain for {kind.value}")

        checked = []
        for step in steps:
            strategy = step.strategy
            sid = strategy.strategy_id
            if getattr(strategy, "kind", kind) != kind:
                raise PipelineConfigError(
                    f"Strategy {sid} handles {strategy.kind.value} sources, "
                    f"not {kind.value}"
                )
            timeout = step.timeout if step.timeout is not None else strategy.default_timeout
            if timeout is None or timeout <= 0:
                raise PipelineConfigError(f"Strategy {sid} has no timeout configured")
            if not 1 <= step.max_attempts <= MAX_ATTEMPTS_CEILING:
                raise PipelineConfigError(
                    f"Strategy {sid}: max_attempts must be between 1 and "
                    f"{MAX_ATTEMPTS_CEILING}, got {step.max_attempts}"
                )
            if step.base_delay < 0:
                raise PipelineConfigError(f"Strategy {sid}: base_delay must be >= 0")
            checked.append(
                ChainStep(
                    strategy=strategy,
                    timeout=timeout,
                    max_attempts=step.max_attempts,
                    base_delay=step.base_delay,
                )
            )
        return checked

    def chain_for(self, kind: SourceKind) -> List[ChainStep]:
        return list(self._chains.get(SourceKind(kind), []))

    async def acquire(
        self, descriptor: SourceDescriptor, cancel: Optional[CancellationToken] = None
    ) -> AcquisitionResult:
        """Acquire content for ``descriptor``.

        Concurrent calls for the same (kind, reference) share one run; the
        cancellation token of the first caller governs that run.

        Raises:
            AcquisitionError: Nothing usable was produced, or the run was canceled
            PipelineConfigError: No chain is configured for the source kind
        """
        if descriptor.kind not in self._chains:
            raise PipelineConfigError(
                f"No strategy chain configured for {descriptor.kind.value}"
            )
        return await self.store.coalesce(
            descriptor.key, lambda: self._run_chain(descriptor, cancel)
        )

    async def _run_chain(
        self, descriptor: SourceDescriptor, cancel: Optional[CancellationToken]
    ) -> AcquisitionResult:
        key = descriptor.key
        label = f"{descriptor.kind.value} {descriptor.reference}"
        self.store.reset(key)

        failures: List[Failure] = []
        candidates: List[RawResult] = []

        for step in self._chains[descriptor.kind]:
            sid = step.strategy_id
            last_attempt: List[Attempt] = []

            def record(attempt, raw, failure):
                last_attempt[:] = [attempt]
                if failure is not None:
                    failures.append(failure)
                    self.store.put(
                        key, AttemptRecord(attempt, AttemptOutcome.FAILURE, failure)
                    )

            logger.info(f"Trying {sid} for {label}")
            raw, failure = await self.retry.run(
                step.strategy,
                descriptor,
                max_attempts=step.max_attempts,
                base_delay=step.base_delay,
                budget=step.timeout,
                cancel=cancel,
                on_attempt=record,
            )

            if failure is not None:
                # Cancellation between attempts is not reported through record()
                if not any(f is failure for f in failures):
                    failures.append(failure)
                if failure.canceled:
                    self.store.update(key, AcquisitionStatus.FAILED)
                    logger.info(f"Acquisition of {label} canceled during {sid}")
                    raise AcquisitionError(
                        f"Acquisition of {label} canceled", failures, canceled=True
                    )
                if failure.kind == FailureKind.CONFIGURATION:
                    logger.error(f"{sid} is misconfigured: {failure.message}")
                logger.info(f"Escalating past {sid} for {label}: {failure.kind.value}")
                continue

            reason = self.validator.check(raw)
            attempt = last_attempt[0]

            if reason is None:
                self.store.put(key, AttemptRecord(attempt, AttemptOutcome.SUCCESS))
                if raw.confidence != Confidence.DEGRADED:
                    document = self.validator.normalize(raw, descriptor)
                    self.store.update(key, AcquisitionStatus.SUCCEEDED, document)
                    logger.info(f"Acquired {label} with {sid}")
                    return AcquisitionResult(document=document, failures=failures)
                logger.info(f"Keeping placeholder from {sid} as degraded candidate")
                candidates.append(raw)
                continue

            rejection = self.validator.failure_for(raw, reason)
            failures.append(rejection)
            self.store.put(
                key, AttemptRecord(attempt, AttemptOutcome.REJECTED, rejection)
            )
            if reason == RejectReason.TOO_SHORT:
                candidates.append(raw)
            logger.warning(f"Output of {sid} rejected ({reason.value}); escalating")

        if candidates:
            best = max(
                candidates,
                key=lambda r: (r.confidence != Confidence.DEGRADED, len(r.text().strip())),
            )
            document = self.validator.normalize(
                best, descriptor, confidence=Confidence.DEGRADED
            )
            note = f"Degraded result from {best.strategy_id}"
            if failures:
                note += f"; {summarize_failures(failures)}"
            self.store.update(
                key, AcquisitionStatus.DEGRADED, document, degraded=True
            )
            logger.warning(f"Returning degraded result for {label}: {note}")
            return AcquisitionResult(
                document=document, degraded=True, note=note, failures=failures
            )

        self.store.update(key, AcquisitionStatus.FAILED)
        message = f"All strategies failed for {label}: {summarize_failures(failures)}"
        logger.error(message)
        raise AcquisitionError(message, failures)
