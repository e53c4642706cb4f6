"""Append-only NDJSON history of cycle reports with size-based rotation.

Appends and rotation are serialised by an exclusive portalocker lock on
a sidecar file, so two monitors sharing a report directory cannot
interleave lines or rotate under each other. Rotation follows the
``RotatingFileHandler`` naming: ``.1`` is the newest backup.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import portalocker

logger = logging.getLogger(__name__)


class HistoryLog:
    """One JSON object per line, rotated once it reaches *max_bytes*.

    Parameters
    ----------
    path:
        The history file.
    max_bytes:
        Rotate before an append once the file is at least this large.
        ``0`` disables rotation.
    backups:
        Rotated files kept (``path.1`` .. ``path.N``). ``0`` discards the
        old history on rotation.
    lock_timeout:
        Seconds to wait for the append lock.
    """

    def __init__(
        self,
        path: Path,
        max_bytes: int = 10 * 1024 * 1024,
        backups: int = 5,
        lock_timeout: float = 5.0,
    ) -> None:
        self.path = Path(path)
        self.max_bytes = max_bytes
        self.backups = backups
        self._lock_path = self.path.with_name(self.path.name + ".lock")
        self._lock_timeout = lock_timeout

    def append(self, record: dict[str, Any]) -> None:
        """Write *record* as one line, rotating first if needed."""
        line = json.dumps(record, ensure_ascii=False) + "\n"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with portalocker.Lock(
            str(self._lock_path),
            mode="a",
            timeout=self._lock_timeout,
            flags=portalocker.LOCK_EX,
        ):
            if self._should_rotate():
                self._rotate()
            with open(self.path, "a", encoding="utf-8") as fh:
                fh.write(line)

    def backup_path(self, index: int) -> Path:
        return self.path.with_name(f"{self.path.name}.{index}")

    def _should_rotate(self) -> bool:
        if self.max_bytes <= 0:
            return False
        try:
            return self.path.stat().st_size >= self.max_bytes
        except FileNotFoundError:
            return False

    def _rotate(self) -> None:
        if self.backups <= 0:
            self.path.unlink(missing_ok=True)
            logger.info("History %s truncated", self.path)
            return
        for index in range(self.backups - 1, 0, -1):
            src = self.backup_path(index)
            if src.exists():
                src.replace(self.backup_path(index + 1))
        self.path.replace(self.backup_path(1))
        logger.info("History %s rotated", self.path)
