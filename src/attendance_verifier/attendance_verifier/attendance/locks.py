from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class KeyedLock:
    """Mutual exclusion per key, created on demand and dropped when unused.

    Threads working on different keys only share the short registry guard,
    never each other's lock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.holders += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
