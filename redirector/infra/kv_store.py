from __future__ import annotations

import re
import time
from collections.abc import Callable
from threading import RLock
from typing import Protocol

from redis import Redis
from redis.exceptions import RedisError

from redirector.domain.errors import StoreUnavailableError
from redirector.infra import redis_state, settings

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    def delete(self, key: str) -> bool: ...

    def list_prefix(self, prefix: str) -> list[tuple[str, str]]: ...


class RedisKeyValueStore:
    """Store backed by a redis client created with ``decode_responses=True``.

    Every call is a single redis command, so per-key atomicity is what redis
    gives; ``list_prefix`` is a SCAN followed by reads and may observe writes
    that land in between.
    """

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    @staticmethod
    def _text(raw: object) -> str | None:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode()
        return str(raw)

    def get(self, key: str) -> str | None:
        try:
            raw = self._redis.get(key)
        except RedisError as exc:
            raise StoreUnavailableError("key-value store unavailable") from exc
        return self._text(raw)

    def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        try:
            self._redis.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise StoreUnavailableError("key-value store unavailable") from exc

    def delete(self, key: str) -> bool:
        try:
            return bool(self._redis.delete(key))
        except RedisError as exc:
            raise StoreUnavailableError("key-value store unavailable") from exc

    def list_prefix(self, prefix: str) -> list[tuple[str, str]]:
        pattern = _GLOB_SPECIAL.sub(r"\\\1", prefix) + "*"
        items: list[tuple[str, str]] = []
        try:
            for raw_key in self._redis.scan_iter(match=pattern):
                key = self._text(raw_key)
                if key is None or not key.startswith(prefix):
                    continue
                value = self._text(self._redis.get(key))
                # expired or deleted between SCAN and GET
                if value is None:
                    continue
                items.append((key, value))
        except RedisError as exc:
            raise StoreUnavailableError("key-value store unavailable") from exc
        return items


class MemoryKeyValueStore:
    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = RLock()

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._live(key)

    def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = self._live(key) is not None
            self._data.pop(key, None)
            return existed

    def list_prefix(self, prefix: str) -> list[tuple[str, str]]:
        with self._lock:
            items: list[tuple[str, str]] = []
            for key in list(self._data):
                if not key.startswith(prefix):
                    continue
                value = self._live(key)
                if value is not None:
                    items.append((key, value))
            return items


_memory_store = MemoryKeyValueStore()


def get_store() -> KeyValueStore:
    if settings.get_settings().store_backend == "memory":
        return _memory_store
    return RedisKeyValueStore(redis_state.get_redis())
