from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from dataclasses import replace
from fnmatch import fnmatchcase

import pytest
from fastapi.testclient import TestClient

from redirector import main as app_main
from redirector.infra import redis_state, settings
from redirector.infra.settings import Settings

API_KEY = "test-api-key"


class FakeRedis:
    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._store[key] = value
        self.ttls[key] = ex
        return True

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def delete(self, key: str) -> int:
        self.ttls.pop(key, None)
        return 1 if self._store.pop(key, None) is not None else 0

    def scan_iter(self, match: str = "*") -> Iterator[str]:
        for key in list(self._store):
            if fnmatchcase(key, match):
                yield key

    def ping(self) -> bool:
        return True


def make_settings(**overrides: object) -> Settings:
    base = Settings(
        service_domain="example.com",
        default_tenant="admin",
        admin_tenant="admin",
        api_key=API_KEY,
        auth_mode="multi",
        oauth_client_id="client-id",
        oauth_client_secret="client-secret",
        oauth_authorize_url="https://idp.test/authorize",
        oauth_token_url="https://idp.test/token",
        oauth_userinfo_url="https://idp.test/userinfo",
        state_secret="test-state-secret",
    )
    return replace(base, **overrides)  # type: ignore[arg-type]


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def use_settings(monkeypatch: pytest.MonkeyPatch) -> Callable[..., Settings]:
    def _apply(**overrides: object) -> Settings:
        config = make_settings(**overrides)
        monkeypatch.setattr(settings, "get_settings", lambda: config)
        return config

    _apply()
    return _apply


@pytest.fixture()
def api_client(
    monkeypatch: pytest.MonkeyPatch,
    fake_redis: FakeRedis,
    use_settings: Callable[..., Settings],
) -> Generator[TestClient, None, None]:
    monkeypatch.setattr(redis_state, "get_redis", lambda: fake_redis)
    client = TestClient(app_main.app, base_url="https://example.com")
    yield client
    app_main.app.dependency_overrides.clear()
    client.close()
