"""In-process keyed locks used to serialize borrow/return per copy and per member."""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List


class LockTimeout(Exception):
    def __init__(self, key: Hashable):
        super().__init__(f"Timed out waiting for lock {key!r}")
        self.key = key


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLocks:
    """
    One lock per key, created on first use and dropped again once no caller
    holds or waits on it, so the table only ever holds keys in flight.
    """

    def __init__(self, timeout: float | None = None):
        self._guard = threading.Lock()
        self._entries: Dict[Hashable, _Entry] = {}
        self.timeout = timeout

    def in_use(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._entries)

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: Hashable) -> Iterator[None]:
        """
        Acquire every key, always in sorted order so two callers can't deadlock.
        Raises LockTimeout (after releasing anything already taken) if a key
        isn't free within self.timeout.
        """
        acquired: List[tuple] = []
        try:
            for key in sorted(set(keys), key=repr):
                entry = self._checkout(key)
                ok = entry.lock.acquire(timeout=self.timeout) if self.timeout is not None else entry.lock.acquire()
                if not ok:
                    self._checkin(key, entry)
                    raise LockTimeout(key)
                acquired.append((key, entry))
            yield
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key, entry)
