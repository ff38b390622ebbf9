# mines/locks.py
from __future__ import annotations

import threading
from contextlib import contextmanager


class KeyedLock:
    """
    One mutex per key, created on demand and dropped when the last holder
    leaves. Serializes work on a single session / (owner, round) pair inside
    this process; the database row locks cover other processes.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict = {}  # key -> [lock, holders]

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def __len__(self):
        with self._guard:
            return len(self._locks)
