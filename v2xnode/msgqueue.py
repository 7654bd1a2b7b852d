"""Thread-safe FIFO queue connecting the pipeline stages."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any


class MessageQueue:
    """Unbounded FIFO queue; ``pop`` blocks while empty, ``pop_nowait`` does not.

    ``None`` may be pushed like any other item; stages use it to wake
    a blocked consumer during shutdown.
    """

    def __init__(self) -> None:
        self._items: deque[Any] = deque()
        self._cond = threading.Condition()

    def push(self, item: Any) -> None:
        with self._cond:
            self._items.append(item)
            self._cond.notify()

    def pop(self) -> Any:
        """Remove and return the oldest item, waiting until one is available."""
        with self._cond:
            while not self._items:
                self._cond.wait()
            return self._items.popleft()

    def pop_nowait(self) -> Any:
        """Remove and return the oldest item, or ``None`` if the queue is empty."""
        with self._cond:
            return self._items.popleft() if self._items else None

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)