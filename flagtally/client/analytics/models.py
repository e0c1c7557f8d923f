"""
analytics/models.py

Data models for the analytics flush loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

FlushStatus = Literal["sent", "failed", "skipped"]


@dataclass(frozen=True, slots=True)
class FlushReport:
    """
    Outcome of one flush-window expiry.

    A report is produced every time the window elapses, including windows
    with nothing to send, so the processor's last_flush always reflects the
    most recent timer reset.
    """

    timestamp: float
    """Unix epoch time at which the flush was attempted."""

    feature_count: int
    """Number of distinct identifiers in the payload."""

    total_evaluations: int
    """Sum of all counts in the payload."""

    status: FlushStatus
    """'sent' | 'failed' | 'skipped' (empty aggregate, no request made)."""

    error: str | None = None
    """Short description of the failure when status == 'failed'."""

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "feature_count": self.feature_count,
            "total_evaluations": self.total_evaluations,
            "status": self.status,
            "error": self.error,
        }
