"""Parser for Postfix queue-manager log lines."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

DEFAULT_TAG = "postfix/qmgr"

_SEND_RE = re.compile(r"\bfrom=<(?P<sender>[^>]*)>.*?\bnrcpt=(?P<nrcpt>\S+)")


@dataclass(frozen=True)
class SendEvent:
    sender: str
    recipient_count: int


def _to_int(value: str) -> Optional[int]:
    try:
        return int(value.rstrip(","))
    except (TypeError, ValueError):
        return None


def parse_line(line: str, tag: str = DEFAULT_TAG) -> Optional[SendEvent]:
    """Extract sender and recipient count from a queue-manager line.

    Lines from other components, bounces with an empty sender and lines with
    a missing or non-numeric ``nrcpt`` all yield ``None``.
    """

    if not line or tag not in line:
        return None
    match = _SEND_RE.search(line)
    if not match:
        return None

    sender = match.group("sender").strip()
    count = _to_int(match.group("nrcpt"))
    if not sender or count is None or count < 1:
        return None
    return SendEvent(sender=sender, recipient_count=count)
