"""Short-lived cache of unwrapped data encryption keys.

Entries map a user id to the raw data key for the lifetime of the user's
access token. A missing entry means the encryption context is gone and the
user must log in again; it never means "wrong password".
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from functools import lru_cache
from threading import Lock
from typing import Any, Protocol

import redis

from litenotes.core.errors import StorageError
from litenotes.core.settings import settings

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class KeyCache(Protocol):
    """TTL-bounded mapping from user id to raw data key."""

    def put(self, user_id: int, key: bytes, ttl_seconds: int) -> None: ...

    def get(self, user_id: int) -> bytes | None: ...

    def delete(self, user_id: int) -> None: ...


class RedisKeyCache:
    """Key cache backed by Redis ``SET ... EX`` entries holding hex keys."""

    def __init__(self, client: Any, prefix: str = "dek:") -> None:
        self._redis = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "dek:") -> RedisKeyCache:
        """Build a cache from a Redis connection URL."""
        return cls(redis.Redis.from_url(url), prefix=prefix)

    def _key(self, user_id: int) -> str:
        return f"{self._prefix}{user_id}"

    def put(self, user_id: int, key: bytes, ttl_seconds: int) -> None:
        """Store ``key`` for ``user_id``, replacing any previous entry."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        try:
            self._redis.set(self._key(user_id), key.hex(), ex=int(ttl_seconds))
        except redis.RedisError as err:
            logger.error("Key cache write failed for user %s: %s", user_id, err)
            raise StorageError("Key cache unavailable") from err

    def get(self, user_id: int) -> bytes | None:
        """Return the cached key, or None if absent or expired."""
        try:
            value = self._redis.get(self._key(user_id))
        except redis.RedisError as err:
            logger.error("Key cache read failed for user %s: %s", user_id, err)
            raise StorageError("Key cache unavailable") from err
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("ascii")
        try:
            return bytes.fromhex(value)
        except ValueError:
            logger.warning("Discarding malformed key cache entry for user %s", user_id)
            return None

    def delete(self, user_id: int) -> None:
        """Remove the entry for ``user_id`` if present."""
        try:
            self._redis.delete(self._key(user_id))
        except redis.RedisError as err:
            logger.warning("Key cache delete failed for user %s: %s", user_id, err)
            raise StorageError("Key cache unavailable") from err


class InMemoryKeyCache:
    """Process-local key cache for single-worker deployments and tests."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[int, tuple[bytes, float]] = {}
        self._lock = Lock()

    def put(self, user_id: int, key: bytes, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            self._entries[user_id] = (bytes(key), self._clock() + ttl_seconds)

    def get(self, user_id: int) -> bytes | None:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            key, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[user_id]
                return None
            return key

    def delete(self, user_id: int) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def clear(self) -> None:
        """Drop every entry, as a cache restart would."""
        with self._lock:
            self._entries.clear()


@lru_cache(maxsize=1)
def get_key_cache() -> KeyCache:
    """Return the process-wide key cache selected by configuration."""
    if settings.key_cache_backend == "memory":
        logger.info("Using in-process key cache")
        return InMemoryKeyCache()
    return RedisKeyCache.from_url(settings.redis_url, prefix=settings.key_cache_prefix)
