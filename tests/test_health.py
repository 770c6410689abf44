"""
Tests for health endpoints and the startup sequence.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from task_tracker.config import Settings
from task_tracker.main import create_app
from task_tracker.store import TaskStore

from .fakes import make_engine, store_error


def test_health(client: TestClient):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["environment"] == "test"


def test_detailed_health_reports_database(client: TestClient):
    response = client.get("/api/health/detailed")

    assert response.status_code == 200
    assert response.json()["database"] == "connected"


def test_detailed_health_is_503_when_database_is_down(client: TestClient, store: TaskStore, monkeypatch):
    monkeypatch.setattr(store, "ping", store_error)

    response = client.get("/api/health/detailed")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "unhealthy"
    assert body["database"] == "disconnected"
    assert body["error"] == "Database connection failed"


def test_startup_bootstraps_schema(settings: Settings):
    store = TaskStore(make_engine())

    with TestClient(create_app(settings, store)) as client:
        response = client.post("/api/tasks", json={"title": "first"})

    assert response.status_code == 201


def test_startup_fails_when_database_is_unreachable(settings: Settings, monkeypatch):
    store = TaskStore(make_engine())
    monkeypatch.setattr(store, "ping", store_error)
    called = []
    monkeypatch.setattr(store, "ensure_schema", lambda: called.append(True))

    with pytest.raises(SQLAlchemyError):
        with TestClient(create_app(settings, store)):
            pass

    assert called == []


def test_startup_fails_when_schema_cannot_be_created(settings: Settings, monkeypatch):
    store = TaskStore(make_engine())
    monkeypatch.setattr(store, "ensure_schema", store_error)

    with pytest.raises(SQLAlchemyError):
        with TestClient(create_app(settings, store)):
            pass
