"""Bounded undo/redo stack over immutable workout snapshots."""

from __future__ import annotations

import logging
import operator
import time
from collections import deque
from typing import Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CAPACITY = 100
DEFAULT_COALESCE_WINDOW_SEC = 0.3


class History(Generic[T]):
    """Linear history: an array of snapshots and a cursor on the current one.

    Commits that equal the current snapshot are ignored. A commit carrying
    the same ``coalesce_key`` as the previous one, within the coalesce
    window, replaces the current entry instead of pushing a new one.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        equals: Callable[[T, T], bool] = operator.eq,
        coalesce_window_sec: float = DEFAULT_COALESCE_WINDOW_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be >= 1")
        self._capacity = capacity
        self._entries: deque[T] = deque(maxlen=capacity)
        self._cursor = -1
        self._equals = equals
        self._coalesce_window_sec = coalesce_window_sec
        self._clock = clock
        self._last_key: Hashable | None = None
        self._last_commit_ts: float | None = None

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def current(self) -> T | None:
        if self._cursor < 0:
            return None
        return self._entries[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return 0 <= self._cursor < len(self._entries) - 1

    def reset(self, snapshot: T | None = None) -> None:
        self._entries.clear()
        self._cursor = -1
        self._forget_key()
        if snapshot is not None:
            self._entries.append(snapshot)
            self._cursor = 0

    def commit(self, snapshot: T, coalesce_key: Hashable | None = None) -> bool:
        current = self.current
        if current is not None and self._equals(current, snapshot):
            return False

        while len(self._entries) > self._cursor + 1:
            self._entries.pop()

        now = self._clock()
        if self._should_coalesce(coalesce_key, now):
            self._entries[self._cursor] = snapshot
            logger.debug("Coalesced history entry for %r", coalesce_key)
            if self._equals(self._entries[self._cursor - 1], snapshot):
                # The burst cancelled itself out.
                self._entries.pop()
                self._cursor -= 1
                self._forget_key()
                return True
        else:
            # A full deque drops its oldest entry on append.
            self._entries.append(snapshot)
            self._cursor = len(self._entries) - 1

        self._last_key = coalesce_key
        self._last_commit_ts = now
        return True

    def undo(self) -> T | None:
        if not self.can_undo:
            return None
        self._cursor -= 1
        self._forget_key()
        return self._entries[self._cursor]

    def redo(self) -> T | None:
        if not self.can_redo:
            return None
        self._cursor += 1
        self._forget_key()
        return self._entries[self._cursor]

    def _should_coalesce(self, key: Hashable | None, now: float) -> bool:
        if key is None or key != self._last_key or self._last_commit_ts is None:
            return False
        # The first entry is the baseline and is never rewritten.
        if self._cursor < 1:
            return False
        return now - self._last_commit_ts <= self._coalesce_window_sec

    def _forget_key(self) -> None:
        self._last_key = None
        self._last_commit_ts = None
