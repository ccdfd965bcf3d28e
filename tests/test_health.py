from __future__ import annotations

from fastapi.testclient import TestClient

from redirector import main as app_main


def test_healthz_ok() -> None:
    client = TestClient(app_main.app)
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readyz_ok_when_store_ready(monkeypatch, use_settings) -> None:
    monkeypatch.setattr(app_main, "check_redis_ready", lambda: True)
    client = TestClient(app_main.app)
    response = client.get("/readyz")
    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"store": "ok"}}


def test_readyz_fails_when_store_unreachable(monkeypatch, use_settings) -> None:
    monkeypatch.setattr(app_main, "check_redis_ready", lambda: False)
    client = TestClient(app_main.app)
    response = client.get("/readyz")
    assert response.status_code == 503


def test_readyz_skips_redis_for_memory_backend(monkeypatch, use_settings) -> None:
    use_settings(store_backend="memory")
    monkeypatch.setattr(app_main, "check_redis_ready", lambda: False)
    client = TestClient(app_main.app)
    assert client.get("/readyz").status_code == 200
