"""Fixed-capacity ring buffer used as the ingestion store for every channel.

Pushes are O(1) and overwrite the oldest entry once the buffer is full; the
buffer never raises or blocks on overflow.  Storage is allocated once at
construction.  Optionally the buffer may grow its capacity a single time when
it is held near full, which is the only reallocation it ever performs.
"""

from __future__ import annotations

import logging
from typing import Generic, Iterator, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fill ratio at which a growable buffer reallocates
GROWTH_PRESSURE = 0.9


class RingBuffer(Generic[T]):
    """Overwrite-oldest circular buffer.

    Args:
        capacity: Maximum number of items held.
        allow_growth: Permit one capacity increase under near-full pressure.
        growth_factor: Multiplier applied to the capacity when growing.
    """

    def __init__(self, capacity: int, allow_growth: bool = False, growth_factor: float = 1.5):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._items: list[T | None] = [None] * capacity
        self._head = 0  # index of the oldest item
        self._size = 0
        self._can_grow = allow_growth
        self._growth_factor = growth_factor
        self.overwritten = 0
        self.grown = False

    @classmethod
    def for_duration(cls, seconds: float, rate_hz: float, **kwargs) -> "RingBuffer[T]":
        """Size a buffer to hold *seconds* of data at *rate_hz*."""
        return cls(int(round(seconds * rate_hz)), **kwargs)

    @property
    def capacity(self) -> int:
        return len(self._items)

    @property
    def is_full(self) -> bool:
        return self._size == len(self._items)

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[T]:
        return iter(self.to_list())

    def push(self, item: T) -> None:
        """Append *item*, evicting the oldest entry if the buffer is full."""
        if self._can_grow and self._size >= GROWTH_PRESSURE * self.capacity:
            self._grow()

        cap = len(self._items)
        if self._size < cap:
            self._items[(self._head + self._size) % cap] = item
            self._size += 1
        else:
            self._items[self._head] = item
            self._head = (self._head + 1) % cap
            self.overwritten += 1

    def extend(self, items) -> None:
        for item in items:
            self.push(item)

    def to_list(self) -> list[T]:
        """Snapshot of the contents, oldest first."""
        cap = len(self._items)
        return [self._items[(self._head + i) % cap] for i in range(self._size)]  # type: ignore[misc]

    def latest(self, n: int) -> list[T]:
        """The most recent *n* items, oldest first."""
        if n <= 0:
            return []
        n = min(n, self._size)
        cap = len(self._items)
        start = self._head + self._size - n
        return [self._items[(start + i) % cap] for i in range(n)]  # type: ignore[misc]

    def clear(self) -> None:
        for i in range(len(self._items)):
            self._items[i] = None
        self._head = 0
        self._size = 0

    def _grow(self) -> None:
        new_capacity = int(self.capacity * self._growth_factor)
        if new_capacity <= self.capacity:
            self._can_grow = False
            return
        items = self.to_list()
        self._items = items + [None] * (new_capacity - len(items))
        self._head = 0
        self._can_grow = False
        self.grown = True
        logger.debug("ring buffer grown to %d entries", new_capacity)

    def __repr__(self) -> str:
        return f"RingBuffer({self._size}/{self.capacity})"
