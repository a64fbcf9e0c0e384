"""
Per-bead verification locks.

At most one verification workflow may run per bead. Acquire and release are
synchronous, so the check-and-set never spans an await and needs no mutex
under the event loop. A lock older than the timeout counts as free, so a
crashed workflow cannot wedge a bead forever.
"""

from __future__ import annotations

import time
from typing import Callable

import config


class VerificationLockStore:
    def __init__(self, timeout_sec: float | None = None,
                 clock: Callable[[], float] = time.monotonic):
        self.timeout_sec = timeout_sec if timeout_sec is not None else config.VERIFICATION_LOCK_TIMEOUT_SEC
        self._clock = clock
        self._locks: dict[str, float] = {}  # bead_id → started_at

    def _is_stale(self, started_at: float) -> bool:
        return self._clock() - started_at >= self.timeout_sec

    def acquire(self, bead_id: str) -> bool:
        """Take the lock for a bead. False if another live workflow holds it."""
        started_at = self._locks.get(bead_id)
        if started_at is not None and not self._is_stale(started_at):
            return False
        self._locks[bead_id] = self._clock()
        return True

    def release(self, bead_id: str) -> None:
        self._locks.pop(bead_id, None)

    def is_locked(self, bead_id: str) -> bool:
        started_at = self._locks.get(bead_id)
        if started_at is None:
            return False
        if self._is_stale(started_at):
            del self._locks[bead_id]
            return False
        return True

    def clear(self) -> None:
        self._locks.clear()

    def __len__(self) -> int:
        return len(self._locks)
