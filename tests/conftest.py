"""
Shared fixtures: every test gets its own in-memory SQLite database.
"""

import pytest
from fastapi.testclient import TestClient

from task_tracker.config import Settings
from task_tracker.main import create_app
from task_tracker.store import TaskStore

from .fakes import make_engine


@pytest.fixture()
def settings() -> Settings:
    return Settings(database_url_override="sqlite://", environment="test")


@pytest.fixture()
def engine():
    engine = make_engine()
    yield engine
    engine.dispose()


@pytest.fixture()
def store(engine) -> TaskStore:
    store = TaskStore(engine)
    store.ensure_schema()
    return store


@pytest.fixture()
def client(settings: Settings, store: TaskStore):
    app = create_app(settings, store)
    with TestClient(app) as test_client:
        yield test_client
