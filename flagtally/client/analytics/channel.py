"""
analytics/channel.py

Bounded, non-blocking hand-off from evaluation call sites to the
analytics loop.

Any number of threads (or coroutines) may call send(); exactly one
consumer, the AnalyticsProcessor loop, calls try_recv().

Drop policy:
  When the channel is full the *new* event is discarded and
  METRICS.events_dropped is incremented. Nothing is logged and nothing is
  raised: flag evaluation must never stall or fail because of analytics.

Close semantics:
  close() is permanent. Further send() calls raise ChannelClosedError.
  The receiver keeps draining whatever was already queued, then sees
  ChannelDisconnected, which is distinct from ChannelEmpty.
"""

from __future__ import annotations

import queue
import threading

from ..metrics import METRICS
from .errors import ChannelClosedError, ChannelDisconnected, ChannelEmpty

DEFAULT_CAPACITY = 10


class EventChannel:
    """
    Thread-safe bounded channel of integer feature identifiers.

    Args:
        capacity: Maximum number of events buffered between polls.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._queue: queue.Queue[int] = queue.Queue(maxsize=capacity)
        self._closed = threading.Event()
        # Held across the closed check and the put so nothing lands after close().
        self._send_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Sending side
    # ------------------------------------------------------------------

    def send(self, feature_id: int) -> bool:
        """
        Enqueue one event without blocking.

        Returns:
            True  — event enqueued.
            False — channel full, event dropped.

        Raises:
            ChannelClosedError: the channel has been closed.
        """
        with self._send_lock:
            if self._closed.is_set():
                raise ChannelClosedError("analytics channel is closed")
            try:
                self._queue.put_nowait(feature_id)
            except queue.Full:
                METRICS.events_dropped.inc()
                return False
        METRICS.events_tracked.inc()
        return True

    def close(self) -> None:
        """Permanently close the sending side. Safe to call more than once."""
        with self._send_lock:
            self._closed.set()

    # ------------------------------------------------------------------
    # Receiving side
    # ------------------------------------------------------------------

    def try_recv(self) -> int:
        """
        Dequeue one event without blocking.

        Raises:
            ChannelEmpty:        nothing queued right now.
            ChannelDisconnected: closed and drained — the consumer should stop.
        """
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            if not self._closed.is_set():
                raise ChannelEmpty() from None
        # Closed: no further puts can happen, so one more look is final.
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            raise ChannelDisconnected("analytics channel disconnected") from None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    def qsize(self) -> int:
        return self._queue.qsize()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"EventChannel({self.qsize()}/{self.capacity}, {state})"
