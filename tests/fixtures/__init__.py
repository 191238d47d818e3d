"""Test doubles and factories for batch sync tests."""

from .batch_sync_fixtures import (
    BASE_TIME,
    FakeAccountClient,
    FakeClock,
    make_config,
    make_create,
    make_settings,
)

__all__ = [
    "BASE_TIME",
    "FakeAccountClient",
    "FakeClock",
    "make_config",
    "make_create",
    "make_settings",
]
