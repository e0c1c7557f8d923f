"""
analytics/__init__.py

Public API for the analytics sub-package.
"""

from .channel import EventChannel
from .errors import (
    AnalyticsError,
    AnalyticsSerializationError,
    ChannelClosedError,
    ChannelDisconnected,
    ChannelEmpty,
)
from .models import FlushReport
from .processor import AnalyticsLoop, AnalyticsProcessor
from .transport import AnalyticsTransport

__all__ = [
    "AnalyticsProcessor",
    "AnalyticsLoop",
    "AnalyticsTransport",
    "EventChannel",
    "FlushReport",
    "AnalyticsError",
    "AnalyticsSerializationError",
    "ChannelClosedError",
    "ChannelDisconnected",
    "ChannelEmpty",
]
