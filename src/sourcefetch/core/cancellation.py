"""Cooperative cancellation shared by every attempt of one acquisition."""

import asyncio


class CancellationToken:
    """One-shot cancellation signal.

    The retry controller races each attempt and each backoff sleep against
    ``wait()``, so a single ``cancel()`` aborts whatever is in flight.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason = ""

    def cancel(self, reason: str = "canceled by caller") -> None:
        self.reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()
