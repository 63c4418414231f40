"""A pool of reusable message objects."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, TypeVar

T = TypeVar("T")


class MessageBufferPool(Generic[T]):
    """Keeps cleared messages for reuse instead of creating new ones.

    Messages come from ``factory`` and must have a ``Clear()`` method, as
    protobuf messages do. When the pool runs dry it creates half of
    ``initial_size`` new messages (at least one).
    """

    def __init__(self, factory: Callable[[], T], initial_size: int = 1024) -> None:
        if initial_size < 0:
            raise ValueError("initial_size must not be negative")
        self._factory = factory
        self._initial_size = initial_size
        self._lock = threading.Lock()
        self._created = 0
        self._pool: list[T] = [self._create() for _ in range(initial_size)]
        self._capacity = initial_size

    def _create(self) -> T:
        self._created += 1
        return self._factory()

    def _note_size(self) -> None:
        self._capacity = max(self._capacity, len(self._pool))

    def allocate(self) -> T:
        """Take a message from the pool, creating more if it is empty."""
        with self._lock:
            if not self._pool:
                refill = max(1, self._initial_size // 2)
                self._pool.extend(self._create() for _ in range(refill))
                self._note_size()
            return self._pool.pop()

    def release(self, message: T) -> None:
        """Clear ``message`` and return it to the pool."""
        message.Clear()
        with self._lock:
            self._pool.append(message)
            self._note_size()

    @contextmanager
    def borrow(self) -> Iterator[T]:
        """Allocate a message for the duration of a with block."""
        message = self.allocate()
        try:
            yield message
        finally:
            self.release(message)

    def capacity(self) -> int:
        """Most messages the pool has held at once."""
        with self._lock:
            return self._capacity

    def available(self) -> int:
        with self._lock:
            return len(self._pool)

    def created(self) -> int:
        with self._lock:
            return self._created