"""ThreadLockRegistry: one mutex per conversation thread id."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ThreadLockRegistry:
    """Hands out a ``threading.Lock`` per thread id.

    Locks are reference-counted and dropped once no handler holds or waits on
    them, so the table stays bounded by the number of in-flight threads.
    Different thread ids never contend.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._refs: dict[str, int] = {}

    @contextmanager
    def hold(self, thread_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(thread_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[thread_id] = lock
            self._refs[thread_id] = self._refs.get(thread_id, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._refs[thread_id] -= 1
                if self._refs[thread_id] == 0:
                    del self._refs[thread_id]
                    del self._locks[thread_id]

    def active_count(self) -> int:
        with self._guard:
            return len(self._locks)
