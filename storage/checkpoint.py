"""JSON checkpoint file for the rate window."""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from detectors.rate_window import RestoreError
from utils.logging_setup import get_logger

log = get_logger(__name__)


class CheckpointStore:
    """Persist the serialized event log to ``path``.

    Writes go to a temporary file in the same directory which then replaces
    the previous checkpoint, so a crash mid-write leaves the old file intact.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> Optional[Any]:
        """Return the decoded checkpoint, or ``None`` when there is none."""

        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as exc:
            raise RestoreError(f"checkpoint {self.path} is not valid JSON: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise RestoreError(f"checkpoint {self.path} is not UTF-8: {exc}") from exc

    def save(self, state: Dict[str, List[str]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        log.debug("Checkpoint salvo em %s (%s buckets)", self.path, len(state))
