"""Factory that selects the document store based on environment variables.

Decision logic:
  REDIS_ENABLED=true      -> RedisJsonStore (key: {REDIS_KEY_PREFIX}:{file stem})
  REDIS_ENABLED unset/false -> JsonFileStore
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

from infra.file_lock import DEFAULT_ATTEMPTS, DEFAULT_RETRY_INTERVAL
from infra.json_store import JsonFileStore
from infra.redis_store import DEFAULT_REDIS_URL, RedisJsonStore

logger = logging.getLogger(__name__)


def get_document_store(
    path: Path,
    attempts: int = DEFAULT_ATTEMPTS,
    retry_interval: float = DEFAULT_RETRY_INTERVAL,
) -> RedisJsonStore | JsonFileStore:
    """Return the :class:`DocumentStore` implementation for *path*."""
    if os.environ.get("REDIS_ENABLED", "").lower() != "true":
        return JsonFileStore(path, attempts=attempts, retry_interval=retry_interval)

    redis_url = os.environ.get("REDIS_URL", DEFAULT_REDIS_URL)
    prefix = os.environ.get("REDIS_KEY_PREFIX", "booking")
    key = f"{prefix}:{Path(path).stem}"
    logger.info("Using Redis document store %s at %s", key, redis_url)
    return RedisJsonStore(
        key,
        redis_url=redis_url,
        attempts=attempts,
        retry_interval=retry_interval,
    )
