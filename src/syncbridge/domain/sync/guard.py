"""Re-entrancy guard: at most one active run per system pair."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from syncbridge.domain.errors import ConcurrentRunRejected

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)


@dataclass(slots=True)
class RunGuard:
    """Non-blocking per-pair locks.

    A second trigger while a run holds the lock is rejected immediately with
    ``ConcurrentRunRejected``; it is never queued behind the active run.
    """

    _locks: dict[str, threading.Lock] = field(default_factory=dict[str, threading.Lock])
    _registry_lock: threading.Lock = field(default_factory=threading.Lock)

    def _lock_for(self, pair_name: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(pair_name)
            if lock is None:
                lock = threading.Lock()
                self._locks[pair_name] = lock
            return lock

    @contextmanager
    def hold(self, pair_name: str) -> Iterator[None]:
        lock = self._lock_for(pair_name)
        if not lock.acquire(blocking=False):
            log.warning("Rejected concurrent sync run for %s", pair_name)
            raise ConcurrentRunRejected(pair_name)
        try:
            yield
        finally:
            lock.release()

    def is_running(self, pair_name: str) -> bool:
        return self._lock_for(pair_name).locked()


# Process-wide default shared by engines that are not given their own guard.
DEFAULT_RUN_GUARD = RunGuard()
