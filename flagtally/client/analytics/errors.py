"""
analytics/errors.py

Exception types raised by the analytics pipeline.

Only ChannelClosedError ever reaches a caller of track_feature(); the
remaining types are raised and handled inside the background loop.
"""

from __future__ import annotations


class AnalyticsError(Exception):
    """Base class for every analytics pipeline error."""


class ChannelClosedError(AnalyticsError):
    """An event was sent after the processor was torn down."""


class ChannelEmpty(AnalyticsError):
    """No event is waiting right now; try again later."""


class ChannelDisconnected(AnalyticsError):
    """The channel is closed and fully drained; no event will ever arrive."""


class AnalyticsSerializationError(AnalyticsError):
    """The aggregate could not be encoded as a JSON payload."""
