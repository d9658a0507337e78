"""Simple in-memory state helpers."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass
class AlertThrottle:
    """Track the last alert evaluation for interval gating.

    ``last_alert_ts`` of ``0`` means no evaluation has happened yet.
    """

    interval_seconds: int
    last_alert_ts: int = 0

    def is_open(self, now: int) -> bool:
        return (now - self.last_alert_ts) >= self.interval_seconds

    def mark(self, now: int) -> None:
        self.last_alert_ts = now
