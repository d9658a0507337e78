"""Follow a growing log file line by line."""
from __future__ import annotations

import os
import time
from typing import BinaryIO, Callable, Iterator, Optional

from utils.logging_setup import get_logger

log = get_logger(__name__)


def _never() -> bool:
    return False


class LogFollower:
    """Yield lines appended to ``path``, or ``None`` while nothing arrives.

    The ``None`` yields give the caller a chance to look at its own flags
    between blocking reads.  After a read error the file is reopened at the
    end of the last complete line; it is only read from the start when it
    did not exist at first open or has shrunk below that offset.
    """

    def __init__(
        self,
        path: str,
        poll_interval: float = 1.0,
        seek_end: bool = True,
        wait_file_not_found: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.path = path
        self.poll_interval = poll_interval
        self.seek_end = seek_end
        self.wait_file_not_found = wait_file_not_found
        self._sleep = sleep

    def _open(self) -> Optional[BinaryIO]:
        try:
            fp = open(self.path, "rb")
        except OSError as exc:
            log.warning("Não foi possível abrir %s: %s", self.path, exc)
            return None
        log.debug("Acompanhando %s", self.path)
        return fp

    def _position(self, fp: BinaryIO, offset: Optional[int], seek_end: bool) -> int:
        if offset is None:
            fp.seek(0, os.SEEK_END if seek_end else os.SEEK_SET)
            return fp.tell()
        size = os.fstat(fp.fileno()).st_size
        if offset > size:
            log.info("%s encolheu, relendo do início", self.path)
            offset = 0
        fp.seek(offset)
        return offset

    def follow(self, should_stop: Callable[[], bool] = _never) -> Iterator[Optional[str]]:
        seek_end = self.seek_end
        # byte offset just past the last complete line handed out
        offset: Optional[int] = None
        partial = b""
        fp: Optional[BinaryIO] = None
        try:
            while not should_stop():
                if fp is None:
                    fp = self._open()
                    if fp is None:
                        seek_end = False
                        self._sleep(self.wait_file_not_found)
                        yield None
                        continue
                    offset = self._position(fp, offset, seek_end)
                    partial = b""

                try:
                    chunk = fp.readline()
                except OSError as exc:
                    log.warning("Erro lendo %s: %s", self.path, exc)
                    fp.close()
                    fp = None
                    continue

                if not chunk:
                    self._sleep(self.poll_interval)
                    yield None
                    continue

                partial += chunk
                if not partial.endswith(b"\n"):
                    continue
                offset += len(partial)
                line = partial.decode("utf-8", errors="replace").rstrip("\r\n")
                partial = b""
                yield line
        finally:
            if fp is not None:
                fp.close()
