"""
Per-entity-set locking to prevent lost updates.

Every load -> mutate -> save cycle over a record set runs inside a write
region. A region may span several sets (a purchase touches users, cars and
audit); locks are always taken in sorted name order so two regions can
never wait on each other.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Generator, Iterable, List

from ..utils.exceptions import LockTimeoutError

LOCK_TIMEOUT_SECONDS = 30


class LockRegistry:
    """Named re-entrant locks, created on first use."""

    def __init__(self, timeout_seconds: float = LOCK_TIMEOUT_SECONDS):
        self.timeout_seconds = timeout_seconds
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def acquire(self, keys: Iterable[str]) -> Generator[None, None, None]:
        """
        Hold every lock in ``keys`` for the duration of the block.
        Raises LockTimeoutError if any of them cannot be taken in time.
        """
        timeout = self.timeout_seconds
        held: List[threading.RLock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._lock_for(key)
                if not lock.acquire(timeout=timeout):
                    raise LockTimeoutError(f"Could not acquire lock {key} within {timeout}s")
                held.append(lock)
            yield
        finally:
            for lock in reversed(held):
                lock.release()
