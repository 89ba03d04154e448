"""Tests for the /health endpoint."""

from __future__ import annotations

from fastapi.testclient import TestClient

from legiswatch.config import Config
from legiswatch.storage.schema import init_db
from legiswatch.web.app import create_app


class TestHealthEndpoint:
    def test_healthy_response(self, tmp_path):
        db_path = str(tmp_path / "test.db")
        init_db(db_path)
        client = TestClient(create_app(Config(database_path=db_path)))

        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy", "database": "ok"}

    def test_unhealthy_when_db_missing(self, tmp_path):
        db_path = str(tmp_path / "nonexistent" / "missing.db")
        client = TestClient(create_app(Config(database_path=db_path)), raise_server_exceptions=False)

        resp = client.get("/health")
        assert resp.status_code == 503
        data = resp.json()
        assert data["status"] == "unhealthy"
        assert data["database"] == "error"
        assert "detail" in data

    def test_unhealthy_when_schema_missing(self, tmp_path):
        db_path = tmp_path / "empty.db"
        db_path.touch()
        client = TestClient(create_app(Config(database_path=str(db_path))))

        assert client.get("/health").status_code == 503

    def test_health_not_under_api_prefix(self, tmp_path):
        db_path = str(tmp_path / "test.db")
        init_db(db_path)
        client = TestClient(create_app(Config(database_path=db_path)))

        assert client.get("/health").status_code == 200
        assert client.get("/api/v1/health").status_code != 200
