"""Single-instance guard based on an exclusive PID-file lock."""
from __future__ import annotations

import fcntl
import os
from pathlib import Path
from typing import IO, Optional


class AlreadyRunningError(RuntimeError):
    pass


class PidLock:
    """Hold ``fcntl.flock(LOCK_EX)`` on ``path`` for the life of the process."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._fp: Optional[IO[str]] = None

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fp = open(self.path, "a+", encoding="utf-8")
        try:
            fcntl.flock(fp.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            fp.close()
            raise AlreadyRunningError(f"{self.path} está bloqueado por outro processo") from exc
        fp.seek(0)
        fp.truncate()
        fp.write(f"{os.getpid()}\n")
        fp.flush()
        self._fp = fp

    def release(self) -> None:
        if self._fp is None:
            return
        try:
            fcntl.flock(self._fp.fileno(), fcntl.LOCK_UN)
        finally:
            self._fp.close()
            self._fp = None

    def __enter__(self) -> "PidLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
