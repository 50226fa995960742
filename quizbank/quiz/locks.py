"""
Keyed lock registry.

Serializes work on the same key (e.g. one student's requests for one
objective) inside a single process while letting unrelated keys proceed in
parallel. Entries are reference counted and dropped once no caller holds or
waits on them.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class KeyedLocks:
    """Per-key mutual exclusion for threads of one process."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Hashable, tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock for `key` for the duration of the block."""
        with self._guard:
            lock, refs = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, refs + 1)

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                _, refs = self._locks[key]
                if refs <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, refs - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
