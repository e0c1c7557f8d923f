"""
analytics/processor.py

AnalyticsProcessor — counts flag evaluations and periodically flushes the
aggregated counts to the collector.

Pipeline:
    track_feature(id) ──► EventChannel (bounded, drop-newest)
                               │
                               ▼
                        AnalyticsLoop.run()  (one asyncio task)
                          ├─ try_recv() → analytics_data[id] += 1
                          └─ elapsed > timer → POST snapshot, clear

Scheduling:
  - Busy-poll with yield: after receiving an event the loop yields with
    asyncio.sleep(0); when the channel is empty it sleeps poll_interval
    seconds (default 1 ms). The flush timer is checked on every iteration,
    so flush latency is bounded by the poll rate, not by a separate timer.
  - The loop holds the aggregate lock for the whole update-then-maybe-flush
    step, so anyone reading under the same lock sees a consistent snapshot.
  - Every window expiry resets the timer and clears the aggregate, whether
    the POST succeeded, failed, or was skipped because nothing was counted.

Lifetime:
  The loop only ever references the channel, never the processor handle.
  When the handle is closed (explicitly, or by being garbage-collected)
  the channel closes, the loop drains what is left and exits. Nothing
  pending at that point is flushed.

Stats dict (per processor):
    events_aggregated — events pulled off the channel and counted
    flushes_sent      — windows delivered to the collector
    flushes_failed    — windows dropped after an encode/transport error
    flushes_skipped   — windows that expired with an empty aggregate
"""

from __future__ import annotations

import asyncio
import logging
import time
import weakref
from collections.abc import Iterable, Mapping

import httpx

from ..metrics import METRICS
from .channel import DEFAULT_CAPACITY, EventChannel
from .errors import ChannelDisconnected, ChannelEmpty
from .models import FlushReport
from .transport import AnalyticsTransport

logger = logging.getLogger(__name__)

ANALYTICS_TIMER_IN_MILLI = 10 * 1000
DEFAULT_POLL_INTERVAL_SECONDS = 0.001

# Strong references to running loops; the event loop itself only keeps weak ones.
_background_tasks: set[asyncio.Task] = set()


class AnalyticsLoop:
    """
    Sole owner and writer of the aggregate.

    Args:
        channel:       Receiving side of the ingestion channel.
        transport:     Delivers flush payloads; closed when the loop exits.
        timer_ms:      Flush window in milliseconds.
        poll_interval: Sleep between polls of an empty channel, in seconds.
    """

    def __init__(
        self,
        channel: EventChannel,
        transport: AnalyticsTransport,
        timer_ms: int = ANALYTICS_TIMER_IN_MILLI,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._channel = channel
        self._transport = transport
        self.timer_ms = timer_ms
        self._poll_interval = poll_interval

        self.lock = asyncio.Lock()
        self.analytics_data: dict[int, int] = {}
        self.last_flushed = time.monotonic()
        self.last_flush: FlushReport | None = None

        self.stats: dict[str, int] = {
            "events_aggregated": 0,
            "flushes_sent": 0,
            "flushes_failed": 0,
            "flushes_skipped": 0,
        }

    # ------------------------------------------------------------------
    # Main async loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Poll, aggregate and flush until the channel disconnects."""
        logger.info(
            "Analytics loop started — endpoint=%s timer=%dms",
            self._transport.endpoint, self.timer_ms,
        )
        try:
            while True:
                received = await self._process_one()
                if received is None:
                    break
                await asyncio.sleep(0 if received else self._poll_interval)
        finally:
            await self._transport.aclose()
            if self.analytics_data:
                logger.debug(
                    "Discarding %d unflushed feature counts on shutdown",
                    len(self.analytics_data),
                )
            logger.info("Analytics loop stopped — stats: %s", self.stats)

    # ------------------------------------------------------------------
    # Internal: per-iteration logic
    # ------------------------------------------------------------------

    async def _process_one(self) -> bool | None:
        """
        Run one poll-aggregate-maybe-flush cycle.

        Returns:
            True  — an event was counted.
            False — the channel was empty.
            None  — the channel disconnected; the loop must stop.
        """
        try:
            feature_id: int | None = self._channel.try_recv()
        except ChannelEmpty:
            feature_id = None
        except ChannelDisconnected:
            logger.debug("Shutting down analytics loop")
            return None

        async with self.lock:
            if feature_id is not None:
                self.analytics_data[feature_id] = self.analytics_data.get(feature_id, 0) + 1
                self.stats["events_aggregated"] += 1

            elapsed_ms = (time.monotonic() - self.last_flushed) * 1000
            if elapsed_ms > self.timer_ms:
                self.last_flush = await self._flush()
                self.analytics_data.clear()
                self.last_flushed = time.monotonic()

        return feature_id is not None

    async def _flush(self) -> FlushReport:
        """Send the current aggregate. Caller holds the lock and clears afterwards."""
        now = time.time()
        if not self.analytics_data:
            self.stats["flushes_skipped"] += 1
            METRICS.flushes_skipped.inc()
            return FlushReport(now, 0, 0, "skipped")

        feature_count = len(self.analytics_data)
        total = 0
        try:
            total = sum(self.analytics_data.values())
            await self._transport.send(self.analytics_data)
        except TimeoutError:
            error = f"timed out after {self._transport.timeout:.1f}s"
        except httpx.HTTPStatusError as exc:
            error = f"collector returned HTTP {exc.response.status_code}"
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
        else:
            self.stats["flushes_sent"] += 1
            METRICS.flushes_sent.inc()
            logger.debug(
                "Flushed analytics for %d features (%d evaluations)",
                feature_count, total,
            )
            return FlushReport(now, feature_count, total, "sent")

        self.stats["flushes_failed"] += 1
        METRICS.flushes_failed.inc()
        logger.warning(
            "Failed to send analytics data (%d features, %d evaluations dropped): %s",
            feature_count, total, error,
        )
        return FlushReport(now, feature_count, total, "failed", error=error)


def _on_loop_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Analytics loop crashed: %r", exc)


class AnalyticsProcessor:
    """
    Handle held by the flag client. Construct it inside a running event loop.

    track_feature() is safe to call from any thread; it never blocks and
    never raises unless the processor has already been closed.

    Args:
        api_url:       Base API URL; "analytics/flags/" is appended.
        headers:       Default request headers (e.g. X-Environment-Key).
        timeout:       Per-request timeout in seconds.
        timer:         Flush window in milliseconds (default 10 000).
        capacity:      Ingestion channel size.
        poll_interval: Sleep between polls of an empty channel, in seconds.
        transport:     Optional httpx transport override.
    """

    def __init__(
        self,
        api_url: str,
        headers: Mapping[str, str] | None = None,
        timeout: float = 10.0,
        timer: int | None = None,
        *,
        capacity: int = DEFAULT_CAPACITY,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        loop = asyncio.get_running_loop()
        self._channel = EventChannel(capacity)
        self._loop = AnalyticsLoop(
            channel=self._channel,
            transport=AnalyticsTransport(api_url, headers, timeout, transport=transport),
            timer_ms=ANALYTICS_TIMER_IN_MILLI if timer is None else timer,
            poll_interval=poll_interval,
        )
        self._task = loop.create_task(self._loop.run(), name="analytics")
        _background_tasks.add(self._task)
        self._task.add_done_callback(_on_loop_done)
        # Closing the channel is the only way to stop the loop.
        self._finalizer = weakref.finalize(self, self._channel.close)

    @classmethod
    def from_settings(
        cls,
        settings=None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> AnalyticsProcessor:
        """Build a processor from a Settings instance (defaults to the global one)."""
        if settings is None:
            from ..config import settings
        return cls(
            settings.API_URL,
            settings.default_headers(),
            settings.REQUEST_TIMEOUT_SECONDS,
            settings.ANALYTICS_TIMER_MS,
            capacity=settings.ANALYTICS_CHANNEL_CAPACITY,
            poll_interval=settings.ANALYTICS_POLL_INTERVAL_SECONDS,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def track_feature(self, feature_id: int) -> None:
        """Record one evaluation. Dropped silently if the channel is full."""
        self._channel.send(feature_id)

    def track_features(self, feature_ids: Iterable[int]) -> None:
        for feature_id in feature_ids:
            self._channel.send(feature_id)

    def close(self) -> None:
        """Stop accepting events; the loop exits on its next poll."""
        self._finalizer()

    async def aclose(self) -> None:
        """Close the channel and wait for the loop to finish."""
        self.close()
        await asyncio.gather(self._task, return_exceptions=True)

    async def __aenter__(self) -> AnalyticsProcessor:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Read-only inspection
    # ------------------------------------------------------------------

    @property
    def lock(self) -> asyncio.Lock:
        """Guards analytics_data; hold it to read a consistent view."""
        return self._loop.lock

    @property
    def analytics_data(self) -> dict[int, int]:
        return self._loop.analytics_data

    async def snapshot(self) -> dict[int, int]:
        async with self._loop.lock:
            return dict(self._loop.analytics_data)

    @property
    def last_flushed(self) -> float:
        """time.monotonic() value of the most recent window expiry."""
        return self._loop.last_flushed

    @property
    def last_flush(self) -> FlushReport | None:
        return self._loop.last_flush

    @property
    def endpoint(self) -> str:
        return self._loop._transport.endpoint

    @property
    def running(self) -> bool:
        return not self._task.done()

    @property
    def closed(self) -> bool:
        return self._channel.closed

    @property
    def stats(self) -> dict[str, int]:
        return self._loop.stats

    def __repr__(self) -> str:
        state = "running" if self.running else "terminated"
        return f"AnalyticsProcessor({self.endpoint!r}, {state})"
