"""Queue of real-time requests sent by a client during a live session."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Any

__all__ = ["QueueClosedError", "LiveRequest", "LiveRequestQueue"]

DEFAULT_QUEUE_SIZE = 100


class QueueClosedError(RuntimeError):
    """Raised when sending to or reading from a closed queue."""

    def __init__(self, message: str = "queue is closed") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class LiveRequest:
    """A real-time request: text content, binary data, or a close signal."""

    content: Any = None
    blob: bytes = b""
    close: bool = False


class LiveRequestQueue:
    """Bounded, thread-safe FIFO of live requests that can be closed once."""

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        self._items: deque[LiveRequest] = deque()
        self._maxsize = maxsize
        self._closed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        """True once close() has been called."""
        with self._cond:
            return self._closed

    def send(self, request: LiveRequest) -> None:
        """Append a request, waiting while the queue is full."""
        with self._cond:
            while not self._closed and 0 < self._maxsize <= len(self._items):
                self._cond.wait()
            if self._closed:
                raise QueueClosedError()
            self._items.append(request)
            self._cond.notify_all()

    def send_content(self, content: Any) -> None:
        """Send a request that carries only *content*."""
        self.send(LiveRequest(content=content))

    def get(self) -> LiveRequest:
        """Remove and return the next request, waiting until one arrives."""
        with self._cond:
            while not self._closed and not self._items:
                self._cond.wait()
            if self._closed:
                raise QueueClosedError()
            request = self._items.popleft()
            self._cond.notify_all()
            return request

    def close(self) -> None:
        """Close the queue and wake every waiting sender and reader."""
        with self._cond:
            if not self._closed:
                self._closed = True
                self._cond.notify_all()