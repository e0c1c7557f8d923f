"""
client/metrics.py

Lightweight thread-safe counters for the analytics pipeline.
No external dependencies — uses Python's threading.Lock.

Usage:
    from flagtally.client.metrics import METRICS
    METRICS.events_tracked.inc()
    print(METRICS.as_dict())
"""

import threading


class Counter:
    """A thread-safe integer counter."""

    __slots__ = ("_value", "_lock")

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    def reset(self) -> None:
        with self._lock:
            self._value = 0

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self) -> str:  # pragma: no cover
        return f"Counter({self._value})"


class Metrics:
    """Process-wide counters shared by every AnalyticsProcessor."""

    def __init__(self) -> None:
        # --- Ingestion ---
        self.events_tracked: Counter = Counter()
        """Evaluations accepted onto an ingestion channel."""

        self.events_dropped: Counter = Counter()
        """Evaluations discarded because the channel was full."""

        # --- Flush ---
        self.flushes_sent: Counter = Counter()
        """Flush windows delivered to the collector."""

        self.flushes_failed: Counter = Counter()
        """Flush windows whose payload could not be encoded or delivered."""

        self.flushes_skipped: Counter = Counter()
        """Flush windows that expired with nothing to send."""

    def as_dict(self) -> dict:
        """Return all counters as a plain dict (safe for JSON serialisation)."""
        return {
            "events_tracked": self.events_tracked.value,
            "events_dropped": self.events_dropped.value,
            "flushes_sent": self.flushes_sent.value,
            "flushes_failed": self.flushes_failed.value,
            "flushes_skipped": self.flushes_skipped.value,
        }

    def reset_all(self) -> None:
        """Reset every counter to zero (useful in tests)."""
        for attr in vars(self).values():
            if isinstance(attr, Counter):
                attr.reset()


# Module-level singleton — import from here everywhere
METRICS = Metrics()
