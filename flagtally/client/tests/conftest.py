"""
tests/conftest.py

Shared fixtures: an in-memory analytics collector (httpx.MockTransport)
and a METRICS reset so counters never leak between tests.
"""

from __future__ import annotations

import json

import httpx
import pytest

from flagtally.client.metrics import METRICS


class FakeCollector:
    """Records every request it receives and answers with a fixed status."""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)

    @property
    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture(autouse=True)
def _reset_metrics():
    METRICS.reset_all()
    yield


@pytest.fixture
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture
def make_collector():
    """Factory for collectors that answer with a non-default status."""
    return FakeCollector
