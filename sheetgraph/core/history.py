"""Bounded, branch-discarding undo/redo history."""

import logging
from typing import Callable, Generic, TypeVar

from .constants import MAX_HISTORY_SIZE

logger = logging.getLogger(__name__)

V = TypeVar("V")


def same_value(a, b) -> bool:
    """Structural equality that keeps booleans apart from numbers (True != 1)."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(same_value(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(same_value(x, y) for x, y in zip(a, b))
    return a == b


class HistoryStore(Generic[V]):
    """
    Undo/redo timeline over immutable values.

    Holds at most `capacity` snapshots (the current one included) and a
    cursor into them. Writing after an undo discards the redo-able future.
    Snapshots are compared by value, so values must be treated as immutable
    once handed to the store.
    """

    def __init__(self, initial: V, capacity: int = MAX_HISTORY_SIZE):
        if capacity < 1:
            raise ValueError(f"History capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._snapshots: list[V] = [initial]
        self._cursor = 0

    @property
    def current(self) -> V:
        return self._snapshots[self._cursor]

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._snapshots) - 1

    def __len__(self) -> int:
        return len(self._snapshots)

    def set(self, next_value: V | Callable[[V], V]) -> bool:
        """
        Record a new snapshot.

        Accepts a value or a function of the current value. Returns False
        when the candidate equals the current snapshot (nothing recorded).
        """
        # Evaluate first; a failing derivation leaves the store untouched
        candidate = next_value(self.current) if callable(next_value) else next_value

        if same_value(candidate, self.current):
            return False

        snapshots = self._snapshots[: self._cursor + 1]
        snapshots.append(candidate)
        if len(snapshots) > self.capacity:
            evicted = len(snapshots) - self.capacity
            snapshots = snapshots[evicted:]
            logger.debug(f"History full, evicted {evicted} oldest snapshot(s)")

        self._snapshots = snapshots
        self._cursor = len(snapshots) - 1
        return True

    def undo(self) -> bool:
        """Step back one snapshot. Returns True if the cursor moved."""
        if not self.can_undo:
            return False
        self._cursor -= 1
        return True

    def redo(self) -> bool:
        """Step forward one snapshot. Returns True if the cursor moved."""
        if not self.can_redo:
            return False
        self._cursor += 1
        return True

    def reset(self, value: V):
        """Replace the whole timeline with a single snapshot."""
        self._snapshots = [value]
        self._cursor = 0
