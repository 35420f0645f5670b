"""
In-process Entry Queue.

A bounded FIFO owned by the pipeline logger. Entries keep insertion order from
`enqueue` through `drain_all` and, after a failed push, through `requeue`.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterable, Iterator, List, Optional

from tierlog.exceptions import QueueConfigurationError

from .types import LogEntry


class EntryQueue:
    """Bounded FIFO of not-yet-shipped log entries.

    Once `capacity` entries are held, new entries are dropped and counted in
    `dropped`; the queue never holds more than `capacity` entries.
    """

    def __init__(self, capacity: int = 1000):
        if capacity <= 0:
            raise QueueConfigurationError(capacity=capacity)
        self._capacity = capacity
        self._items: Deque[LogEntry] = deque()
        self._dropped = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return len(self._items)

    @property
    def dropped(self) -> int:
        """Entries discarded because the queue was full."""
        return self._dropped

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(tuple(self._items))

    def __repr__(self) -> str:
        return f"EntryQueue(size={self.size}, capacity={self._capacity}, dropped={self._dropped})"

    def is_empty(self) -> bool:
        return not self._items

    def is_full(self) -> bool:
        return len(self._items) >= self._capacity

    def peek(self) -> Optional[LogEntry]:
        return self._items[0] if self._items else None

    def enqueue(self, entry: LogEntry) -> int:
        """Append an entry and return the new size."""
        if self.is_full():
            self._dropped += 1
            return len(self._items)
        self._items.append(entry)
        return len(self._items)

    def drain_all(self) -> List[LogEntry]:
        """Remove and return every entry, oldest first."""
        drained = list(self._items)
        self._items.clear()
        return drained

    def requeue(self, entries: Iterable[LogEntry]) -> int:
        """
        Put a failed batch back ahead of anything enqueued since it was drained.

        The oldest entries are kept first; whatever does not fit in `capacity`
        is discarded. Returns how many entries were discarded.
        """
        restored = list(entries)
        combined = restored + list(self._items)
        kept = combined[: self._capacity]
        discarded = len(combined) - len(kept)
        self._items = deque(kept)
        self._dropped += discarded
        return discarded

    def clear(self) -> None:
        self._items.clear()
