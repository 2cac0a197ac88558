"""Cooperative cancellation for provider streams and delayed replay."""
from __future__ import annotations

import asyncio


class CancelToken:
    """Set once by the consumer; producers check it between fragments.

    ``sleep`` is the only way the replayer waits, so a cancel wakes any
    pending delay immediately instead of leaving a timer behind.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Wait up to ``seconds``. Returns True if the full delay elapsed, False if cancelled."""
        if self.cancelled:
            return False
        if seconds <= 0:
            await asyncio.sleep(0)
            return not self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False


def is_cancelled(cancel: CancelToken | None) -> bool:
    return cancel is not None and cancel.cancelled
