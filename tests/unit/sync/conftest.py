"""Shared fixtures for batch sync engine tests."""

import pytest

from batchsync.core.store import InMemoryConfigStore
from batchsync.core.sync.engine import BatchSyncEngine
from tests.fixtures import FakeAccountClient, FakeClock, make_settings


@pytest.fixture
def clock():
    """Virtual clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def account_client(clock):
    """Scripted client that succeeds for every account by default."""
    return FakeAccountClient(clock=clock)


@pytest.fixture
def store():
    return InMemoryConfigStore()


@pytest.fixture
def engine(account_client, store, clock, settings):
    """Engine wired to fakes. Not started: queued entries wait for start()."""
    return BatchSyncEngine(
        client=account_client,
        store=store,
        clock=clock,
        settings=settings,
    )
