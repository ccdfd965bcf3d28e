from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from redirector.domain.errors import StoreUnavailableError
from redirector.infra import kv_store, redis_state
from redirector.infra.kv_store import MemoryKeyValueStore, RedisKeyValueStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class BrokenRedis:
    def get(self, key: str) -> str | None:
        raise RedisConnectionError("connection refused")

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        raise RedisConnectionError("connection refused")

    def delete(self, key: str) -> int:
        raise RedisConnectionError("connection refused")

    def scan_iter(self, match: str = "*"):
        raise RedisConnectionError("connection refused")


def test_memory_store_expires_keys_after_ttl() -> None:
    clock = FakeClock()
    store = MemoryKeyValueStore(clock=clock)
    store.put("session:abc", "payload", ttl_seconds=60)
    store.put("alice:fd", "https://example.com/")

    clock.now += 59
    assert store.get("session:abc") == "payload"

    clock.now += 1
    assert store.get("session:abc") is None
    assert store.get("alice:fd") == "https://example.com/"
    assert store.list_prefix("session:") == []


def test_memory_store_list_prefix_and_delete() -> None:
    store = MemoryKeyValueStore()
    store.put("alice:fd", "a")
    store.put("alice:docs", "b")
    store.put("alicex:fd", "c")

    assert sorted(store.list_prefix("alice:")) == [("alice:docs", "b"), ("alice:fd", "a")]
    assert store.delete("alice:fd") is True
    assert store.delete("alice:fd") is False
    assert store.list_prefix("alice:") == [("alice:docs", "b")]


def test_redis_store_round_trips_through_client(fake_redis) -> None:
    fake = fake_redis
    store = RedisKeyValueStore(fake)  # type: ignore[arg-type]

    store.put("session:abc", "payload", ttl_seconds=30)
    store.put("bob:fd", "https://bob.example/")
    store.put("bobby:fd", "https://bobby.example/")

    assert fake.ttls["session:abc"] == 30
    assert fake.ttls["bob:fd"] is None
    assert store.get("session:abc") == "payload"
    assert store.list_prefix("bob:") == [("bob:fd", "https://bob.example/")]
    assert store.delete("bob:fd") is True
    assert store.delete("bob:fd") is False


def test_redis_store_errors_surface_as_store_unavailable() -> None:
    store = RedisKeyValueStore(BrokenRedis())  # type: ignore[arg-type]

    with pytest.raises(StoreUnavailableError):
        store.get("alice:fd")
    with pytest.raises(StoreUnavailableError):
        store.put("alice:fd", "x")
    with pytest.raises(StoreUnavailableError):
        store.delete("alice:fd")
    with pytest.raises(StoreUnavailableError):
        store.list_prefix("alice:")


def test_get_store_follows_backend_setting(monkeypatch: pytest.MonkeyPatch, fake_redis, use_settings) -> None:
    monkeypatch.setattr(redis_state, "get_redis", lambda: fake_redis)

    assert isinstance(kv_store.get_store(), RedisKeyValueStore)

    use_settings(store_backend="memory")
    assert isinstance(kv_store.get_store(), MemoryKeyValueStore)
