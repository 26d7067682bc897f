"""In-process mutual exclusion keyed by an identifier (e.g. session id)."""

from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator, Tuple


class KeyedLock:
    """One lock per key, dropped once no thread holds or waits on it."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[str, Tuple[Lock, int]] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = Lock()
            self._locks[key] = (lock, users + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                _, users = self._locks[key]
                if users <= 1:
                    self._locks.pop(key, None)
                else:
                    self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
