from __future__ import annotations

import pytest

from cache_layer import cache_clear
from db import dispose_engine


@pytest.fixture()
def app_client(tmp_path, monkeypatch):
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'visa_tracker_test.db'}")
    monkeypatch.setenv("JWT_SECRET", "test-jwt-secret-for-the-suite-0123456789")
    monkeypatch.setenv("RENDER_MODE", "inline")
    monkeypatch.setenv("ARTIFACT_DIR", str(tmp_path / "artifacts"))
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "0")
    monkeypatch.setenv("REDIS_URL", "")
    cache_clear()

    from app import create_app

    app = create_app()
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield app, client
    cache_clear()
    dispose_engine()


@pytest.fixture()
def cfg(app_client):
    app, _client = app_client
    return app.config["CFG"]
