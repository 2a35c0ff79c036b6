"""Per-key mutual exclusion for the contended ledger rows.

Stock levels, coupon counters and the order-number sequence are updated with a
load-check-persist cycle that must not interleave with another writer of the
same row. ``KeyedLock`` hands out one re-entrant lock per key so unrelated SKUs
or coupon codes never block each other.

The locks live in process memory and only serialise threads of one worker.
With several workers on the shared database (the production overlay), two
writers of the same row are kept apart by the aggregate version check
instead: the loser gets ``ExpectedVersionError`` and checkout retries.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLock:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield
