"""Per-key single-writer locks for check-then-act sequences.

Admission (per customer identity) and settlement (per therapist) read a
count or a total from the Store and then write based on it. Holding the lock
for the key while doing both keeps two requests in the same process from
interleaving; the services additionally re-verify inside the database
transaction for multi-process deployments.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLock:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    # Drop idle entries so anonymous visitor ids do not accumulate
                    del self._waiters[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


admission_locks = KeyedLock()
settlement_locks = KeyedLock()
