"""
analytics/transport.py

Async HTTP delivery of aggregated flag-evaluation counts.

Responsibilities:
  - Build the collector endpoint once: <api_url>analytics/flags/
  - Encode the aggregate as JSON with stringified identifiers
  - POST it with the configured default headers
  - Enforce a hard per-request timeout

The transport never swallows errors: send() raises on timeout, network
failure, or a non-2xx response, and the flush step decides what to do.

Usage:
    transport = AnalyticsTransport(
        "https://edge.api.flagsmith.com/api/v1/",
        headers={"X-Environment-Key": "ser.xxx"},
        timeout=10.0,
    )
    await transport.send({1: 10, 2: 3})
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping

import httpx

from .errors import AnalyticsSerializationError

logger = logging.getLogger(__name__)

ANALYTICS_PATH = "analytics/flags/"


def build_endpoint(api_url: str) -> str:
    """Append the analytics path to a base URL, tolerating a missing slash."""
    base = api_url if api_url.endswith("/") else api_url + "/"
    return f"{base}{ANALYTICS_PATH}"


def serialize(analytics_data: Mapping[int, int]) -> bytes:
    """
    Encode {feature_id: count} as a JSON object body.

    Keys are stringified ({1: 2} → b'{"1": 2}'); JSON objects only allow
    string keys and the collector expects the identifier as text.
    """
    try:
        return json.dumps(
            {str(feature_id): count for feature_id, count in analytics_data.items()}
        ).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise AnalyticsSerializationError(str(exc)) from exc


class AnalyticsTransport:
    """
    Thin wrapper around one long-lived httpx.AsyncClient.

    Args:
        api_url:   Base API URL, e.g. "https://edge.api.flagsmith.com/api/v1/"
        headers:   Default headers sent on every request (auth, env key).
        timeout:   Per-request timeout in seconds.
        transport: Optional httpx transport (httpx.MockTransport in tests).
    """

    def __init__(
        self,
        api_url: str,
        headers: Mapping[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = build_endpoint(api_url)
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            headers=dict(headers or {}),
            timeout=timeout,
            transport=transport,
        )

    async def send(self, analytics_data: Mapping[int, int]) -> httpx.Response:
        """
        POST one flush payload.

        Raises:
            AnalyticsSerializationError: payload could not be encoded.
            TimeoutError:                request exceeded the configured timeout.
            httpx.HTTPError:             network failure or non-2xx status.
        """
        body = serialize(analytics_data)
        async with asyncio.timeout(self.timeout):
            resp = await self._client.post(
                self.endpoint,
                content=body,
                headers={"Content-Type": "application/json"},
            )
        resp.raise_for_status()
        logger.debug(
            "Analytics POST %s → %d (%d bytes)",
            self.endpoint, resp.status_code, len(body),
        )
        return resp

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def closed(self) -> bool:
        return self._client.is_closed
