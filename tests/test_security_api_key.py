from pathlib import Path

from fastapi.testclient import TestClient

from storjstore.api.v1.deps import get_storage_service
from storjstore.app.services.storage_service import StorageService
from storjstore.common import config
from storjstore.common.config import get_settings
from storjstore.main import create_app


def test_api_key_required_when_enabled(monkeypatch, backend, settings):
    # Enable API key and set expected key
    monkeypatch.setenv("API_KEY_ENABLED", "true")
    monkeypatch.setenv("API_KEY", "secret-123")
    # reset settings cache
    get_settings.cache_clear()  # type: ignore[attr-defined]

    app = create_app()
    service = StorageService(backend=backend, settings=settings)
    app.dependency_overrides[get_storage_service] = lambda: service
    client = TestClient(app)

    # Missing key -> 401 on protected routes
    r = client.put("/api/v1/objects/a", content=b"x")
    assert r.status_code == 401

    # Wrong key -> 401
    r = client.put("/api/v1/objects/a", content=b"x", headers={"X-API-Key": "wrong"})
    assert r.status_code == 401
    assert "a" not in backend.objects

    # Correct key -> 201
    r = client.put(
        "/api/v1/objects/a", content=b"x", headers={"X-API-Key": "secret-123"}
    )
    assert r.status_code == 201

    # Health stays open
    assert client.get("/health").status_code == 200


def test_enabled_without_configured_key_rejects_every_request(
    monkeypatch, backend, settings
):
    monkeypatch.setenv("API_KEY_ENABLED", "true")
    monkeypatch.delenv("API_KEY", raising=False)
    monkeypatch.setattr(config, "ENV_FILE", Path("/nonexistent/.env"))
    get_settings.cache_clear()  # type: ignore[attr-defined]

    app = create_app()
    service = StorageService(backend=backend, settings=settings)
    app.dependency_overrides[get_storage_service] = lambda: service
    client = TestClient(app)

    for headers in ({}, {"X-API-Key": "anything"}, {"X-API-Key": ""}):
        r = client.put("/api/v1/objects/a", content=b"x", headers=headers)
        assert r.status_code == 503
        assert r.json()["error_code"] == "api_key_not_configured"
    assert "a" not in backend.objects
    assert client.get("/health").status_code == 200
