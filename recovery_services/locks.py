"""
Per-trgid critical sections for concurrent ingestions.

Contract:
    ``hold(keys)`` acquires one lock per distinct key in sorted order and
    releases them in reverse on exit.  Two batches sharing any trgid are
    serialized; batches with disjoint trgids never block each other.
    Sorted acquisition makes lock-order deadlock impossible.

Entries are reference counted and dropped when no holder or waiter
remains, so the registry stays bounded by the keys in flight.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.refs = 0


class KeyedLockRegistry:
    """Thread-safe registry of locks keyed by string."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[list[str]]:
        ordered = sorted(set(keys))
        entries = self._checkout(ordered)
        acquired: list[threading.Lock] = []
        try:
            for entry in entries:
                entry.lock.acquire()
                acquired.append(entry.lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()
            self._checkin(ordered)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, keys: list[str]) -> list[_Entry]:
        with self._guard:
            entries = []
            for key in keys:
                entry = self._entries.get(key)
                if entry is None:
                    entry = self._entries[key] = _Entry()
                entry.refs += 1
                entries.append(entry)
            return entries

    def _checkin(self, keys: list[str]) -> None:
        with self._guard:
            for key in keys:
                entry = self._entries[key]
                entry.refs -= 1
                if entry.refs == 0:
                    del self._entries[key]


_default_registry = KeyedLockRegistry()


def default_lock_registry() -> KeyedLockRegistry:
    """Process-wide registry shared by every ingestion service instance."""
    return _default_registry
