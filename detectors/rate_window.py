"""Sliding-window recipient rate detector."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from storage.state import AlertThrottle


class RestoreError(ValueError):
    """Raised when a serialized event log is structurally invalid."""


@dataclass(frozen=True)
class RateWindowConfig:
    window_seconds: int = 300
    recipient_limit: int = 10
    alert_interval_seconds: int = 60


@dataclass(frozen=True)
class AlertRecord:
    sender: str
    count: int
    window_seconds: int
    limit: int


@dataclass
class AlertDecision:
    """Outcome of a single ``ingest`` call.

    ``sender_counts`` always holds the totals of the surviving window, even
    when the alert gate was closed (``evaluated`` is then ``False``).
    """

    alerts: List[AlertRecord] = field(default_factory=list)
    sender_counts: Dict[str, int] = field(default_factory=dict)
    evaluated: bool = False


class WindowAggregator:
    """Keep per-second buckets of senders and alert on excessive volume.

    Every call to :meth:`ingest` rescans the whole live window: stale
    buckets are dropped and the per-sender totals are rebuilt from what
    survives.  Alert evaluation is throttled to one pass every
    ``alert_interval_seconds``.
    """

    def __init__(self, cfg: RateWindowConfig | None = None) -> None:
        self.cfg = cfg or RateWindowConfig()
        self.throttle = AlertThrottle(self.cfg.alert_interval_seconds)
        self._buckets: Dict[int, List[str]] = {}

    def __len__(self) -> int:
        return sum(len(senders) for senders in self._buckets.values())

    @property
    def last_alert_ts(self) -> int:
        return self.throttle.last_alert_ts

    def bucket_keys(self) -> List[int]:
        return sorted(self._buckets)

    def ingest(self, sender: str, recipient_count: int, now: int) -> AlertDecision:
        """Record ``recipient_count`` recipients for ``sender`` at ``now``."""

        if not sender:
            raise ValueError("sender must be non-empty")
        if recipient_count < 1:
            raise ValueError(f"recipient_count must be >= 1, got {recipient_count}")

        now = int(now)
        self._buckets.setdefault(now, []).extend([sender] * recipient_count)
        counts = self._expire(now)

        if not self.throttle.is_open(now):
            return AlertDecision(sender_counts=counts, evaluated=False)

        self.throttle.mark(now)
        limit = self.cfg.recipient_limit
        alerts = [
            AlertRecord(
                sender=s,
                count=c,
                window_seconds=self.cfg.window_seconds,
                limit=limit,
            )
            for s, c in counts.items()
            if c > limit
        ]
        return AlertDecision(alerts=alerts, sender_counts=counts, evaluated=True)

    def _expire(self, now: int) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for ts in sorted(self._buckets):
            if now - ts > self.cfg.window_seconds:
                del self._buckets[ts]
                continue
            for sender in self._buckets[ts]:
                counts[sender] = counts.get(sender, 0) + 1
        return counts

    def snapshot(self) -> Dict[str, List[str]]:
        """Return the event log keyed by string-encoded timestamps."""

        return {str(ts): list(self._buckets[ts]) for ts in sorted(self._buckets)}

    def restore(self, state: Any) -> None:
        """Replace the event log with ``state`` as produced by :meth:`snapshot`.

        Stale buckets are accepted as-is; the next ``ingest`` prunes them.
        """

        if not isinstance(state, Mapping):
            raise RestoreError(f"expected a mapping, got {type(state).__name__}")

        buckets: Dict[int, List[str]] = {}
        for key, senders in state.items():
            ts = _parse_ts(key)
            if isinstance(senders, (str, bytes)) or not isinstance(senders, (list, tuple)):
                raise RestoreError(f"bucket {key!r} is not a list of senders")
            if not all(isinstance(s, str) for s in senders):
                raise RestoreError(f"bucket {key!r} contains non-string senders")
            buckets.setdefault(ts, []).extend(senders)

        self._buckets = buckets


def _parse_ts(key: Any) -> int:
    if isinstance(key, bool):
        raise RestoreError(f"invalid timestamp key: {key!r}")
    if isinstance(key, int):
        return key
    if isinstance(key, str):
        text = key.strip()
        digits = text[1:] if text.startswith("-") else text
        if digits.isdigit():
            return int(text)
    raise RestoreError(f"invalid timestamp key: {key!r}")
