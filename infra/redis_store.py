"""Redis-backed document store with a SET NX lock."""
from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Callable, TypeVar

import redis as redis_lib

from infra.exceptions import LockTimeout, StoreError
from infra.file_lock import DEFAULT_ATTEMPTS, DEFAULT_RETRY_INTERVAL

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_LOCK_TTL = 30.0  # seconds

# Delete the lock only if it still carries our token.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisJsonStore:
    """Store one JSON document under a Redis string key.

    Key format::

        {key}        document
        {key}.lock   lock token (expires after lock_ttl seconds)

    Parameters
    ----------
    key:
        Redis key holding the document.
    redis_url:
        Redis connection URL.
    attempts / retry_interval:
        Lock acquisition budget, same semantics as the file lock.
    lock_ttl:
        Expiry of the lock key, bounding how long a crashed holder can
        block other writers.
    """

    def __init__(
        self,
        key: str,
        redis_url: str = DEFAULT_REDIS_URL,
        attempts: int = DEFAULT_ATTEMPTS,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        lock_ttl: float = DEFAULT_LOCK_TTL,
    ) -> None:
        self._key = key
        self._lock_key = f"{key}.lock"
        self._url = redis_url
        self._attempts = attempts
        self._retry_interval = retry_interval
        self._lock_ttl_ms = int(lock_ttl * 1000)
        self._client: Any = self._connect()

    # -- DocumentStore interface ----------------------------------------------

    def load(self, default: Any = None) -> Any:
        """GET and decode the document. Returns *default* when absent."""
        raw: str | None = self._client.get(self._key)
        if raw is None or not raw.strip():
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt JSON under {self._key}: {exc}") from exc

    def save(self, data: Any) -> None:
        """SET the JSON-serialised document."""
        self._client.set(self._key, json.dumps(data, ensure_ascii=False))

    def with_lock(self, operation: Callable[[], T]) -> T:
        """Run *operation* while holding ``{key}.lock``."""
        token = uuid.uuid4().hex
        for attempt in range(self._attempts):
            if self._client.set(
                self._lock_key, token, nx=True, px=self._lock_ttl_ms
            ):
                break
            if attempt < self._attempts - 1:
                time.sleep(self._retry_interval)
        else:
            raise LockTimeout(self._key, self._attempts)

        try:
            return operation()
        finally:
            released = self._client.eval(_RELEASE_SCRIPT, 1, self._lock_key, token)
            if not released:
                logger.warning(
                    "Lock %s expired before release; ttl=%dms",
                    self._lock_key,
                    self._lock_ttl_ms,
                )

    # -- Internals ------------------------------------------------------------

    def _connect(self) -> Any:
        client: Any = redis_lib.Redis.from_url(self._url, decode_responses=True)
        return client
