"""Control events delivered to the main loop."""
from __future__ import annotations

import signal
from dataclasses import dataclass
from typing import List, Union


@dataclass(frozen=True)
class Tick:
    line: str


@dataclass(frozen=True)
class Checkpoint:
    pass


@dataclass(frozen=True)
class Shutdown:
    pass


ControlEvent = Union[Tick, Checkpoint, Shutdown]


class SignalFlags:
    """Turn signals into flags the main loop drains between reads.

    Handlers never touch monitor state; SIGHUP requests a checkpoint and
    SIGTERM/SIGINT request shutdown.
    """

    def __init__(self) -> None:
        self.checkpoint = False
        self.shutdown = False

    def install(self) -> None:
        signal.signal(signal.SIGHUP, self._on_hup)
        signal.signal(signal.SIGTERM, self._on_term)
        signal.signal(signal.SIGINT, self._on_term)

    def _on_hup(self, signum, frame) -> None:
        self.request_checkpoint()

    def _on_term(self, signum, frame) -> None:
        self.request_shutdown()

    def request_checkpoint(self) -> None:
        self.checkpoint = True

    def request_shutdown(self) -> None:
        self.shutdown = True

    def drain(self) -> List[ControlEvent]:
        events: List[ControlEvent] = []
        if self.checkpoint:
            self.checkpoint = False
            events.append(Checkpoint())
        if self.shutdown:
            self.shutdown = False
            events.append(Shutdown())
        return events
