from __future__ import annotations

import queue
import threading
from typing import Optional

from ..core.exceptions import Interrupted
from .event import Event

DEFAULT_POLL_INTERVAL = 0.1


class EventQueue:
    """
    Bounded blocking queue of events.

    ``put`` blocks while the queue is full and ``take`` while it is empty; this
    is the pipeline's only backpressure mechanism. Both accept a cancellation
    flag, checked every ``poll_interval`` seconds while blocked, and raise
    ``Interrupted`` once it is set.
    """
    __slots__ = ("capacity", "poll_interval", "_queue")

    def __init__(self, capacity: int, *, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")

        self.capacity = capacity
        self.poll_interval = poll_interval
        self._queue: "queue.Queue[Event]" = queue.Queue(maxsize=capacity)

    def put(self, event: Event, cancel: Optional[threading.Event] = None, *, timeout: Optional[float] = None) -> None:
        """Blocks until there is room. Raises queue.Full when ``timeout`` (seconds) expires first."""
        if cancel is None:
            self._queue.put(event, timeout=timeout)
            return

        waited = 0.0
        while True:
            if cancel.is_set():
                raise Interrupted("put interrupted")

            try:
                self._queue.put(event, timeout=self.poll_interval)
                return
            except queue.Full:
                waited += self.poll_interval
                if timeout is not None and waited >= timeout:
                    raise

    def take(self, cancel: Optional[threading.Event] = None, *, timeout: Optional[float] = None) -> Event:
        """Blocks until an event is available. Raises queue.Empty when ``timeout`` expires first."""
        if cancel is None:
            return self._queue.get(timeout=timeout)

        waited = 0.0
        while True:
            if cancel.is_set():
                raise Interrupted("take interrupted")

            try:
                return self._queue.get(timeout=self.poll_interval)
            except queue.Empty:
                waited += self.poll_interval
                if timeout is not None and waited >= timeout:
                    raise

    def offer(self, event: Event) -> bool:
        try:
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            return False

    def poll(self) -> Optional[Event]:
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def qsize(self) -> int:
        return self._queue.qsize()

    def __len__(self) -> int:
        return self._queue.qsize()

    def __repr__(self) -> str:
        return f"EventQueue({self.qsize()}/{self.capacity})"
