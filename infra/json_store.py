"""JSON file document store.

Provides the ``DocumentStore`` interface over a single JSON file:

- ``load`` reads and decodes the file (missing file -> default).
- ``save`` uses a write-to-temp + atomic-replace pattern so the file
  always holds either the old or the new content, never a partial write.
- ``with_lock`` serialises read-modify-write cycles with the marker lock
  from :mod:`infra.file_lock`.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, TypeVar

from infra.exceptions import StoreError
from infra.file_lock import DEFAULT_ATTEMPTS, DEFAULT_RETRY_INTERVAL, with_lock

logger = logging.getLogger(__name__)

T = TypeVar("T")


def atomic_write(path: Path, data: Any) -> None:
    """Write *data* as JSON atomically using a temp-file + replace pattern.

    Steps:
        1. Create parent directories.
        2. Write to a temporary file in the same directory.
        3. Flush and fsync the temporary file.
        4. Atomically replace the target file.

    Raises StoreError on failure.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, ensure_ascii=False)

    fd = -1
    tmp_path = ""
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.stem}_",
            suffix=".tmp",
        )
        os.write(fd, content.encode("utf-8"))
        os.fsync(fd)
        os.close(fd)
        fd = -1

        Path(tmp_path).replace(path)
    except OSError as exc:
        if fd >= 0:
            os.close(fd)
        if tmp_path and Path(tmp_path).exists():
            Path(tmp_path).unlink(missing_ok=True)
        raise StoreError(f"Atomic write to {path} failed: {exc}") from exc


class JsonFileStore:
    """Document store backed by one JSON file on disk.

    Parameters
    ----------
    path:
        The JSON document. Its lock marker is ``<path>.lock``.
    attempts / retry_interval:
        Lock acquisition budget (see :class:`infra.file_lock.FileLock`).
    """

    def __init__(
        self,
        path: Path,
        attempts: int = DEFAULT_ATTEMPTS,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
    ) -> None:
        self._path = Path(path)
        self._attempts = attempts
        self._retry_interval = retry_interval

    @property
    def path(self) -> Path:
        return self._path

    # -- DocumentStore interface ----------------------------------------------

    def load(self, default: Any = None) -> Any:
        """Decode the document. Returns *default* when the file is absent.

        A present but unreadable file raises StoreError rather than
        returning *default*, so a later save cannot replace data that
        merely failed to parse.
        """
        if not self._path.exists():
            return default
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Cannot read {self._path}: {exc}") from exc
        if not raw.strip():
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt JSON in {self._path}: {exc}") from exc

    def save(self, data: Any) -> None:
        """Atomically replace the document with *data*."""
        atomic_write(self._path, data)

    def with_lock(self, operation: Callable[[], T]) -> T:
        """Run *operation* under the document's marker lock."""
        return with_lock(
            self._path,
            operation,
            attempts=self._attempts,
            retry_interval=self._retry_interval,
        )
