"""Integration tests for the settings API."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from backend.src.api.main import app
from backend.src.services import config as config_module

AUTH = {"Authorization": "Bearer local-dev-token"}


@pytest.fixture
def client(monkeypatch, tmp_path: Path):
    """Client authenticated through the local-mode dev token."""
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "libraria.db"))
    monkeypatch.setenv("ENCRYPTION_SECRET", "settings-test-secret")
    monkeypatch.setenv("ENABLE_LOCAL_MODE", "true")
    config_module.reload_config()

    with TestClient(app) as test_client:
        yield test_client


@pytest.mark.integration
class TestApiKeys:
    def test_initially_empty(self, client: TestClient):
        response = client.get("/api/settings/api-keys", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"gemini_key": "", "tavily_key": "", "has_gemini": False, "has_tavily": False}

    def test_save_returns_masked_keys(self, client: TestClient):
        response = client.put(
            "/api/settings/api-keys",
            json={"gemini_key": "AIzaSyA1234567890WXYZ", "tavily_key": "tvly-short"},
            headers=AUTH,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["gemini_key"] == "AIzaSyA1••••WXYZ"
        assert body["tavily_key"] == "••••••••"
        assert body["has_gemini"] is True
        assert "AIzaSyA1234567890WXYZ" not in response.text

        again = client.get("/api/settings/api-keys", headers=AUTH).json()
        assert again == body

    def test_clear_key(self, client: TestClient):
        client.put("/api/settings/api-keys", json={"gemini_key": "AIzaSyA1234567890WXYZ"}, headers=AUTH)
        body = client.put("/api/settings/api-keys", json={"gemini_key": ""}, headers=AUTH).json()
        assert body["has_gemini"] is False

    def test_encryption_not_configured(self, client: TestClient, monkeypatch):
        monkeypatch.delenv("ENCRYPTION_SECRET")
        config_module.reload_config()

        response = client.get("/api/settings/api-keys", headers=AUTH)
        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "encryption_not_configured"


@pytest.mark.integration
class TestModelSelection:
    def test_list_models(self, client: TestClient):
        body = client.get("/api/settings/models", headers=AUTH).json()

        assert body["selected"] == "gemini-2.5-flash"
        assert {"value": "gemini-2.5-pro", "label": "Gemini 2.5 Pro"} in body["models"]
        assert len(body["models"]) == 4

    def test_select_model(self, client: TestClient):
        response = client.put("/api/settings/model", json={"model": "gemini-2.0-flash"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["selected"] == "gemini-2.0-flash"
        assert client.get("/api/settings/models", headers=AUTH).json()["selected"] == "gemini-2.0-flash"

    def test_unknown_model_rejected(self, client: TestClient):
        response = client.put("/api/settings/model", json={"model": "gpt-4"}, headers=AUTH)
        assert response.status_code == 422
