"""Deterministic clock, scripted account client and config factories.

FakeClock keeps virtual time. Sleeps that overlap (started from the same
instant by concurrent coroutines) end together, sequential sleeps add up, so
parallel and sequential runs can be compared without real waiting.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

from batchsync.api.services.account_client import SyncOptions
from batchsync.core.config import Settings
from batchsync.schemas.batch_sync import BatchSyncConfig, BatchSyncConfigCreate

BASE_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FakeClock:
    """Virtual clock: `sleep` yields once, then moves time forward."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self._start = start
        self._elapsed = 0.0
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def monotonic(self) -> float:
        return self._elapsed

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        started = self._elapsed
        await asyncio.sleep(0)
        self._elapsed = max(self._elapsed, started + seconds)

    def advance(self, seconds: float) -> None:
        self._elapsed += seconds


class FakeAccountClient:
    """Scripted AccountSyncClient.

    `failures` maps an account id to how many calls fail before it succeeds;
    None means every call fails. `gate`, when set, holds every call until the
    event is set.
    """

    def __init__(
        self,
        clock: FakeClock | None = None,
        latency: float = 0.0,
        failures: dict[str, int | None] | None = None,
        updated_items: int = 8,
    ) -> None:
        self.clock = clock
        self.latency = latency
        self.failures = dict(failures or {})
        self.updated_items = updated_items
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []
        self.options: list[SyncOptions] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def sync_account(self, config: BatchSyncConfig, account_id: str, options: SyncOptions) -> dict[str, Any]:
        self.calls.append(account_id)
        self.options.append(options)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.latency and self.clock is not None:
                await self.clock.sleep(self.latency)

            if account_id in self.failures:
                remaining = self.failures[account_id]
                if remaining is None:
                    raise RuntimeError(f"Downstream rejected account {account_id}")
                if remaining > 0:
                    self.failures[account_id] = remaining - 1
                    raise RuntimeError(f"Transient failure for account {account_id}")

            updated = self.updated_items
            if options.max_updates is not None:
                updated = min(updated, options.max_updates)
            return {
                "account_name": f"Name {account_id}",
                "total_items": 10,
                "updated_items": updated,
                "failed_items": 1,
                "skipped_items": 1,
                "warnings": [],
                "confidence": 0.9,
                "top_sub_resources": [
                    {"resource_id": f"{account_id}-c1", "resource_name": "Search", "update_count": 5},
                ],
            }
        finally:
            self.in_flight -= 1


def make_settings(**overrides: Any) -> Settings:
    """Settings with no dispatch delay, for tests."""
    values: dict[str, Any] = {
        "queue_dispatch_delay_seconds": 0.0,
        "requeue_busy_configs": False,
    }
    values.update(overrides)
    return Settings(**values)


def make_create(**overrides: Any) -> BatchSyncConfigCreate:
    """Create request with fast, deterministic policy defaults."""
    values: dict[str, Any] = {
        "name": "Nightly sync",
        "account_ids": ["A", "B", "C"],
        "max_retries": 0,
        "retry_delay_ms": 0,
        "timeout_ms": 0,
        "rate_limit_delay_ms": 0,
        "max_concurrent_accounts": 3,
    }
    values.update(overrides)
    return BatchSyncConfigCreate(**values)


def make_config(**overrides: Any) -> BatchSyncConfig:
    """Stored configuration built directly, bypassing the engine."""
    values: dict[str, Any] = {
        "id": "cfg-1",
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    values.update(make_create().model_dump())
    values.update(overrides)
    return BatchSyncConfig(**values)
