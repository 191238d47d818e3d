"""Shared test configuration.

The database URL is pinned to an in-memory SQLite database before any
application module reads the settings.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from fastapi.testclient import TestClient

from batchsync.api.dependencies import get_engine
from batchsync.core.store import InMemoryConfigStore
from batchsync.core.sync.engine import BatchSyncEngine
from batchsync.main import app
from tests.fixtures import FakeAccountClient, FakeClock, make_settings


@pytest.fixture
def api_clock():
    return FakeClock()


@pytest.fixture
def api_account_client(api_clock):
    return FakeAccountClient(clock=api_clock)


@pytest.fixture
def api_engine(api_account_client, api_clock):
    """Engine served to route handlers in place of the lifespan engine."""
    return BatchSyncEngine(
        client=api_account_client,
        store=InMemoryConfigStore(),
        clock=api_clock,
        settings=make_settings(),
    )


@pytest.fixture
def client(api_engine):
    """Test client running the app lifespan, with the engine overridden."""
    app.dependency_overrides[get_engine] = lambda: api_engine
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
