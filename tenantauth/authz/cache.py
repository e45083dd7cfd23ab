"""
Read-through cache for ``UserContext`` values.

Two layers:

- ``CacheStore``: a raw key/value store with TTL (Redis in production, an
  in-process dict for single-worker deployments and tests). Stores raise
  ``CacheError`` on backend failure.
- ``ContextCache``: key naming, JSON (de)serialization and failure absorption.
  The relational store stays authoritative; a broken cache only costs latency.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Iterable, Protocol

import redis
from redis.exceptions import RedisError

from .context import UserContext
from .errors import CacheError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_PREFIX = "user:context:"


class CacheStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    def delete(self, key: str) -> None: ...


class RedisCacheStore:
    """``CacheStore`` on top of a redis-py client."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 2.0) -> RedisCacheStore:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    @property
    def client(self) -> redis.Redis:
        return self._client

    def get(self, key: str) -> str | None:
        try:
            value = self._client.get(key)
            if isinstance(value, bytes):
                value = value.decode("utf-8")
        except RedisError as exc:
            raise CacheError(f"redis GET failed: {exc}") from exc
        except UnicodeDecodeError as exc:
            # decode_responses=True raises this from inside client.get too.
            raise CacheError(f"redis value under {key!r} is not UTF-8") from exc
        return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self._client.setex(key, ttl_seconds, value)
        except RedisError as exc:
            raise CacheError(f"redis SETEX failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except RedisError as exc:
            raise CacheError(f"redis DEL failed: {exc}") from exc

    def close(self) -> None:
        self._client.close()


class MemoryCacheStore:
    """
    In-process ``CacheStore`` with TTL.

    Only coherent within one process: with several workers, invalidation in
    one worker does not reach the others until their TTL expires. Use Redis
    for multi-worker deployments.
    """

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if time.monotonic() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = (value, time.monotonic() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class ContextCache:
    """Per-user context cache; every backend failure degrades to a miss."""

    def __init__(
        self,
        store: CacheStore,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("context cache TTL must be positive")
        self._store = store
        self._ttl = ttl_seconds
        self._prefix = prefix

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def key_for(self, user_id: int) -> str:
        return f"{self._prefix}{user_id}"

    def get(self, user_id: int) -> UserContext | None:
        key = self.key_for(user_id)
        try:
            raw = self._store.get(key)
        except CacheError as exc:
            logger.warning("Context cache read failed user=%s: %s", user_id, exc)
            return None
        if raw is None:
            return None

        try:
            context = UserContext.from_dict(json.loads(raw))
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError too.
            logger.warning("Discarding malformed cached context user=%s: %s", user_id, exc)
            return None
        if context.user_id != user_id:
            logger.warning("Discarding cached context stored under the wrong key user=%s", user_id)
            return None
        return context

    def put(self, context: UserContext) -> bool:
        key = self.key_for(context.user_id)
        try:
            self._store.set(key, json.dumps(context.to_dict()), self._ttl)
        except CacheError as exc:
            logger.warning("Context cache write failed user=%s: %s", context.user_id, exc)
            return False
        return True

    def invalidate(self, user_id: int) -> bool:
        try:
            self._store.delete(self.key_for(user_id))
        except CacheError as exc:
            logger.error(
                "Context cache invalidation failed user=%s; stale for at most %ss: %s",
                user_id,
                self._ttl,
                exc,
            )
            return False
        logger.debug("Invalidated cached context user=%s", user_id)
        return True

    def invalidate_many(self, user_ids: Iterable[int]) -> bool:
        results = [self.invalidate(user_id) for user_id in set(user_ids)]
        return all(results)
