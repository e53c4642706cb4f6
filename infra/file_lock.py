"""Marker-file lock serialising read-modify-write cycles on a JSON document.

The lock for ``orders.json`` is the sibling file ``orders.json.lock``.
It is created with ``O_CREAT | O_EXCL`` so creation fails when the marker
already exists, which makes acquisition atomic across threads and across
processes sharing the same data directory. The marker is removed on every
exit path of the critical section.

Waiters retry on a fixed short interval with a bounded attempt count.
There is no fairness between waiters.
"""
from __future__ import annotations

import json
import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, TypeVar

import portalocker

from infra.exceptions import LockTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 120
DEFAULT_RETRY_INTERVAL = 0.01  # seconds
LOCK_SUFFIX = ".lock"


def lock_path_for(document_path: Path) -> Path:
    """Return the marker path guarding *document_path*."""
    return document_path.with_name(document_path.name + LOCK_SUFFIX)


class FileLock:
    """Exclusive marker-file lock for one document path.

    Supports the context manager protocol::

        with FileLock(path):
            data = load(path)
            save(path, mutate(data))
    """

    def __init__(
        self,
        document_path: Path,
        attempts: int = DEFAULT_ATTEMPTS,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self._document_path = Path(document_path)
        self._lock_path = lock_path_for(self._document_path)
        self._attempts = attempts
        self._retry_interval = retry_interval
        self._acquired = False

    @property
    def lock_path(self) -> Path:
        return self._lock_path

    @property
    def is_acquired(self) -> bool:
        """Whether this instance currently holds the marker."""
        return self._acquired

    def acquire(self) -> None:
        """Create the marker, retrying while another holder owns it.

        Raises LockTimeout once the attempt budget is spent. Any OS error
        other than "already exists" propagates on the first attempt.
        """
        if self._acquired:
            raise RuntimeError(f"Lock already held: {self._lock_path}")

        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        flags = os.O_CREAT | os.O_EXCL | os.O_WRONLY

        for attempt in range(self._attempts):
            try:
                fd = os.open(str(self._lock_path), flags, 0o644)
            except FileExistsError:
                if attempt < self._attempts - 1:
                    time.sleep(self._retry_interval)
                continue

            try:
                payload = {
                    "pid": os.getpid(),
                    "acquired_at": datetime.now(timezone.utc).isoformat(),
                }
                os.write(fd, json.dumps(payload).encode("utf-8"))
            except BaseException:
                os.close(fd)
                self._lock_path.unlink(missing_ok=True)
                raise
            os.close(fd)
            self._acquired = True
            logger.debug(
                "Lock acquired: %s (attempt %d)", self._lock_path, attempt + 1
            )
            return

        owner = read_lock_owner(self._document_path)
        raise LockTimeout(
            str(self._document_path),
            self._attempts,
            owner=_describe_owner(owner),
        )

    def release(self) -> None:
        """Remove the marker. Safe to call when not held."""
        if not self._acquired:
            return
        try:
            self._lock_path.unlink(missing_ok=True)
        finally:
            self._acquired = False
        logger.debug("Lock released: %s", self._lock_path)

    def __enter__(self) -> FileLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()


def with_lock(
    document_path: Path,
    operation: Callable[[], T],
    attempts: int = DEFAULT_ATTEMPTS,
    retry_interval: float = DEFAULT_RETRY_INTERVAL,
) -> T:
    """Run *operation* while holding the marker lock for *document_path*.

    The operation is never started when the lock cannot be acquired.
    """
    with FileLock(document_path, attempts=attempts, retry_interval=retry_interval):
        return operation()


def read_lock_owner(document_path: Path) -> dict[str, Any] | None:
    """Return the marker payload for *document_path*, or None.

    None means no marker, or a marker that is empty or unreadable (for
    instance one that was created a moment ago and not yet written).
    """
    lock_path = lock_path_for(Path(document_path))
    if not lock_path.exists():
        return None
    try:
        with portalocker.Lock(
            str(lock_path),
            mode="r",
            timeout=1,
            flags=portalocker.LOCK_SH | portalocker.LOCK_NB,
        ) as fh:
            data = json.loads(fh.read())
    except (portalocker.LockException, json.JSONDecodeError, OSError):
        return None
    return data if isinstance(data, dict) else None


def _describe_owner(owner: dict[str, Any] | None) -> str:
    if not owner:
        return ""
    return f"pid={owner.get('pid', '?')} since {owner.get('acquired_at', '?')}"
