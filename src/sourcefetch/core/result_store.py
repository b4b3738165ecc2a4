"""Session-scoped store of acquisition state with in-flight coalescing.

Entries are keyed by ``(kind, reference)``. The store is the only mutable
state shared between concurrent acquisitions, so every access goes through a
single re-entrant lock and readers get snapshot copies.
"""

import asyncio
import copy
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sourcefetch.core.errors import Failure
from sourcefetch.core.source import Attempt, NormalizedDocument, SourceKey

logger = logging.getLogger(__name__)


class AcquisitionStatus(str, Enum):
    """Lifecycle of one source in the store."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    DEGRADED = "degraded"
    FAILED = "failed"


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    REJECTED = "rejected"  # Strategy returned content the validator refused


@dataclass
class AttemptRecord:
    """An attempt together with how it ended."""

    attempt: Attempt
    outcome: AttemptOutcome
    failure: Optional[Failure] = None
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy_id": self.attempt.strategy_id,
            "attempt_number": self.attempt.attempt_number,
            "budget": self.attempt.budget,
            "started_at": self.attempt.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "outcome": self.outcome.value,
            "failure": self.failure.to_dict() if self.failure else None,
        }


@dataclass
class StoreEntry:
    """Everything known about one source in the current session."""

    key: SourceKey
    status: AcquisitionStatus = AcquisitionStatus.PENDING
    document: Optional[NormalizedDocument] = None
    degraded: bool = False
    failures: List[Failure] = field(default_factory=list)
    attempts: List[AttemptRecord] = field(default_factory=list)
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.status in (
            AcquisitionStatus.SUCCEEDED,
            AcquisitionStatus.DEGRADED,
            AcquisitionStatus.FAILED,
        )


class ResultStore:
    """In-memory store of StoreEntry objects."""

    def __init__(self):
        self._entries: Dict[SourceKey, StoreEntry] = {}
        self._lock = threading.RLock()
        self._in_flight: Dict[SourceKey, "asyncio.Future[Any]"] = {}

    def get(self, key: SourceKey) -> Optional[StoreEntry]:
        """Snapshot of the entry for ``key``, or None."""
        with self._lock:
            entry = self._entries.get(key)
            return copy.deepcopy(entry) if entry is not None else None

    def keys(self) -> List[SourceKey]:
        with self._lock:
            return list(self._entries)

    def reset(self, key: SourceKey) -> None:
        """Start a fresh entry for a new submission of ``key``."""
        with self._lock:
            self._entries[key] = StoreEntry(key=key, status=AcquisitionStatus.RUNNING)

    def put(self, key: SourceKey, record: AttemptRecord) -> None:
        """Append an attempt record (and its failure, if any) to ``key``."""
        with self._lock:
            entry = self._entries.setdefault(key, StoreEntry(key=key))
            entry.attempts.append(record)
            if record.failure is not None:
                entry.failures.append(record.failure)
            entry.updated_at = record.finished_at

    def update(
        self,
        key: SourceKey,
        status: AcquisitionStatus,
        document: Optional[NormalizedDocument] = None,
        degraded: bool = False,
    ) -> None:
        """Record the outcome of an acquisition.

        The best document is only replaced when a new one is supplied.
        """
        with self._lock:
            entry = self._entries.setdefault(key, StoreEntry(key=key))
            entry.status = status
            if document is not None:
                entry.document = document
                entry.degraded = degraded
            entry.updated_at = datetime.now(timezone.utc)

    def invalidate(self, key: SourceKey) -> bool:
        """Drop ``key``; returns True if an entry existed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry (session teardown)."""
        with self._lock:
            self._entries.clear()

    def in_flight(self, key: SourceKey) -> bool:
        with self._lock:
            return key in self._in_flight

    async def coalesce(self, key: SourceKey, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``factory`` once per key; concurrent callers share its outcome.

        The first caller for a key runs the factory. Later callers for the
        same key, arriving while it runs, await the same result or error.
        Cancelling the first caller cancels the shared work for everyone;
        cancelling a later caller only detaches that caller.
        """
        with self._lock:
            shared = self._in_flight.get(key)
            if shared is None:
                shared = asyncio.get_running_loop().create_future()
                self._in_flight[key] = shared
                owner = True
            else:
                owner = False

        if not owner:
            logger.info(f"Joining in-flight acquisition for {key[0].value} {key[1]}")
            return await asyncio.shield(shared)

        try:
            result = await factory()
        except asyncio.CancelledError:
            shared.cancel()
            raise
        except Exception as e:
            shared.set_exception(e)
            # Mark retrieved so an unshared failure does not log a warning
            shared.exception()
            raise
        else:
            shared.set_result(result)
            return result
        finally:
            with self._lock:
                if self._in_flight.get(key) is shared:
                    del self._in_flight[key]
