"""
tests/test_channel.py

Tests for analytics/channel.py — bounded non-blocking send, drop-newest
behaviour, and the empty vs. disconnected distinction on receive.
"""

from __future__ import annotations

import threading
import time

import pytest

from flagtally.client.analytics.channel import EventChannel
from flagtally.client.analytics.errors import (
    ChannelClosedError,
    ChannelDisconnected,
    ChannelEmpty,
)
from flagtally.client.metrics import METRICS


# ---------------------------------------------------------------------------
# send
# ---------------------------------------------------------------------------

class TestSend:

    def test_send_into_empty_channel(self):
        ch = EventChannel(capacity=3)
        assert ch.send(1) is True
        assert ch.qsize() == 1

    def test_default_capacity_is_ten(self):
        assert EventChannel().capacity == 10

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            EventChannel(capacity=0)

    def test_drops_newest_when_full(self):
        ch = EventChannel(capacity=2)
        ch.send(1)
        ch.send(2)
        assert ch.send(3) is False
        assert [ch.try_recv(), ch.try_recv()] == [1, 2]

    def test_full_channel_returns_immediately(self):
        ch = EventChannel(capacity=1)
        ch.send(1)
        start = time.perf_counter()
        for _ in range(1_000):
            ch.send(2)
        assert time.perf_counter() - start < 0.5

    def test_counts_tracked_and_dropped(self):
        ch = EventChannel(capacity=2)
        for i in range(5):
            ch.send(i)
        assert METRICS.events_tracked.value == 2
        assert METRICS.events_dropped.value == 3

    def test_send_after_close_raises(self):
        ch = EventChannel()
        ch.close()
        with pytest.raises(ChannelClosedError):
            ch.send(1)

    def test_concurrent_senders_never_exceed_capacity(self):
        ch = EventChannel(capacity=10)
        results: list[bool] = []
        lock = threading.Lock()

        def worker():
            for _ in range(100):
                ok = ch.send(7)
                with lock:
                    results.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 800
        assert results.count(True) == 10
        assert ch.qsize() == 10


# ---------------------------------------------------------------------------
# try_recv / close
# ---------------------------------------------------------------------------

class TestReceive:

    def test_empty_channel_raises_empty(self):
        ch = EventChannel()
        with pytest.raises(ChannelEmpty):
            ch.try_recv()

    def test_fifo_order(self):
        ch = EventChannel()
        for i in (3, 1, 2):
            ch.send(i)
        assert [ch.try_recv() for _ in range(3)] == [3, 1, 2]

    def test_closed_channel_drains_before_disconnect(self):
        ch = EventChannel()
        ch.send(5)
        ch.close()
        assert ch.try_recv() == 5
        with pytest.raises(ChannelDisconnected):
            ch.try_recv()

    def test_disconnect_is_not_empty(self):
        ch = EventChannel()
        ch.close()
        with pytest.raises(ChannelDisconnected):
            ch.try_recv()
        assert not issubclass(ChannelDisconnected, ChannelEmpty)

    def test_close_is_idempotent(self):
        ch = EventChannel()
        ch.close()
        ch.close()
        assert ch.closed is True
        assert "closed" in repr(ch)

    def test_no_accepted_event_is_lost_across_close(self):
        """Every send() that returned True is received before disconnect."""
        for _ in range(20):
            ch = EventChannel(capacity=1_000)
            accepted = 0
            received = 0
            lock = threading.Lock()
            disconnected = threading.Event()

            def sender():
                nonlocal accepted
                for i in range(200):
                    try:
                        ok = ch.send(i)
                    except ChannelClosedError:
                        return
                    if ok:
                        with lock:
                            accepted += 1

            def receiver():
                nonlocal received
                while True:
                    try:
                        ch.try_recv()
                        received += 1
                    except ChannelEmpty:
                        time.sleep(0)
                    except ChannelDisconnected:
                        disconnected.set()
                        return

            senders = [threading.Thread(target=sender) for _ in range(4)]
            rx = threading.Thread(target=receiver)
            rx.start()
            for t in senders:
                t.start()
            ch.close()
            for t in senders:
                t.join()
            rx.join(timeout=5.0)

            assert disconnected.is_set()
            assert ch.qsize() == 0
            assert received == accepted
