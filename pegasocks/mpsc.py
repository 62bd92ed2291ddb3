"""A bounded multi-producer single-consumer queue that never blocks."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any


class Mpsc:
    """Bounded queue: ``send`` refuses when full, ``recv`` returns None when empty."""

    def __init__(self, size: int):
        if size <= 0 or size & (size - 1):
            raise ValueError(f"size must be a positive power of two, got {size}")
        self.size = size
        self._items: deque[Any] = deque()
        self._lock = threading.Lock()

    def send(self, item: Any) -> bool:
        """Enqueue ``item``; return False and drop nothing if the queue is full."""
        if item is None:
            raise ValueError("None cannot be sent")
        with self._lock:
            if len(self._items) >= self.size:
                return False
            self._items.append(item)
            return True

    def recv(self) -> Any:
        """Dequeue the oldest item, or return None if there is none."""
        with self._lock:
            return self._items.popleft() if self._items else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)