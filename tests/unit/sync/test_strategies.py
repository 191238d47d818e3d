"""Tests for chunk execution and the three execution strategies."""

from unittest.mock import AsyncMock

import pytest

from batchsync.core.sync.chunks import ChunkExecutor, chunk_accounts
from batchsync.core.sync.run import SyncRun
from batchsync.core.sync.strategies import (
    AdaptiveController,
    AdaptiveStrategy,
    ParallelStrategy,
    SequentialStrategy,
    StrategyRunner,
)
from batchsync.core.sync.worker import AccountSyncWorker
from batchsync.schemas.batch_sync import (
    AccountSyncResult,
    AccountSyncStatus,
    ExecuteOptions,
    SyncMode,
)
from tests.fixtures import BASE_TIME, FakeAccountClient, FakeClock, make_config, make_settings


def build_executor(client, clock):
    return ChunkExecutor(AccountSyncWorker(client, clock), clock)


def build_run(config):
    return SyncRun.build(config, "sync-1", ExecuteOptions())


def accounts(count):
    return [f"acct-{i:02d}" for i in range(count)]


class TestChunkAccounts:
    def test_splits_into_consecutive_chunks(self):
        assert chunk_accounts(["a", "b", "c", "d", "e"], 2) == [["a", "b"], ["c", "d"], ["e"]]

    def test_empty_input(self):
        assert chunk_accounts([], 3) == []

    def test_non_positive_size_falls_back_to_one(self):
        assert chunk_accounts(["a", "b"], 0) == [["a"], ["b"]]


class TestChunkExecutor:
    @pytest.mark.asyncio
    async def test_parallel_chunk_keeps_input_order(self, clock):
        client = FakeAccountClient(clock=clock, latency=1.0, failures={"B": None})
        executor = build_executor(client, clock)

        results = await executor.run_parallel(build_run(make_config()), ["A", "B", "C"])

        assert [r.account_id for r in results] == ["A", "B", "C"]
        assert [r.status for r in results] == [
            AccountSyncStatus.COMPLETED,
            AccountSyncStatus.FAILED,
            AccountSyncStatus.COMPLETED,
        ]
        assert client.max_in_flight == 3
        assert clock.monotonic() == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_parallel_chunk_converts_escaped_exception(self, clock, account_client):
        executor = build_executor(account_client, clock)
        ok = AccountSyncResult(
            account_id="A",
            account_name="A",
            status=AccountSyncStatus.COMPLETED,
            start_time=BASE_TIME,
        )
        ok_c = ok.model_copy(update={"account_id": "C"})
        executor.worker.run = AsyncMock(side_effect=[ok, RuntimeError("worker crashed"), ok_c])

        results = await executor.run_parallel(build_run(make_config()), ["A", "B", "C"])

        assert len(results) == 3
        assert results[1].account_id == "B"
        assert results[1].status == AccountSyncStatus.FAILED
        assert results[1].errors == ["worker crashed"]
        assert results[2].account_id == "C"

    @pytest.mark.asyncio
    async def test_sequential_applies_rate_limit_between_accounts_only(self, clock, account_client):
        executor = build_executor(account_client, clock)
        config = make_config(rate_limit_delay_ms=250)

        results = await executor.run_sequential(build_run(config), ["A", "B", "C"])

        assert len(results) == 3
        assert clock.sleeps == [0.25, 0.25]
        assert account_client.max_in_flight == 1


class TestAdaptiveController:
    def test_starts_sequential(self):
        controller = AdaptiveController(max_size=8)

        assert controller.chunk_size == 1
        assert controller.mode == SyncMode.SEQUENTIAL

    def test_fast_chunk_doubles_size(self):
        controller = AdaptiveController(max_size=8)

        assert controller.record_chunk(1, 1000) == 2
        assert controller.mode == SyncMode.PARALLEL
        assert controller.record_chunk(2, 1000) == 4

    def test_rate_exactly_at_threshold_scales_up(self):
        controller = AdaptiveController(max_size=8)

        assert controller.record_chunk(1, 2000) == 2

    def test_growth_capped_at_max(self):
        controller = AdaptiveController(max_size=5)
        for _ in range(5):
            controller.record_chunk(controller.chunk_size, 100)

        assert controller.chunk_size == 5

    def test_slow_chunk_halves_size(self):
        controller = AdaptiveController(max_size=8)
        controller.chunk_size = 4

        assert controller.record_chunk(4, 60000) == 2
        assert controller.record_chunk(2, 60000) == 1
        assert controller.mode == SyncMode.SEQUENTIAL
        assert controller.record_chunk(1, 600000) == 1

    def test_moderate_rate_keeps_size(self):
        controller = AdaptiveController(max_size=8)
        controller.chunk_size = 2

        # 20 accounts per minute sits between the thresholds
        assert controller.record_chunk(2, 6000) == 2

    def test_zero_elapsed_counts_as_fast(self):
        controller = AdaptiveController(max_size=8)

        assert controller.record_chunk(1, 0) == 2
        assert controller.history[0].next_chunk_size == 2


class TestStrategies:
    @pytest.mark.asyncio
    async def test_sequential_strategy_reports_progress_per_account(self, clock, account_client):
        strategy = SequentialStrategy(build_executor(account_client, clock), clock)
        seen = []

        results = await strategy.execute(
            build_run(make_config()),
            lambda processed, current: seen.append((processed, current)),
        )

        assert [r.account_id for r in results] == ["A", "B", "C"]
        assert seen == [(1, "B"), (2, "C"), (3, None)]

    @pytest.mark.asyncio
    async def test_parallel_strategy_bounds_concurrency(self, clock):
        client = FakeAccountClient(clock=clock, latency=1.0)
        strategy = ParallelStrategy(build_executor(client, clock), clock)
        config = make_config(account_ids=accounts(7), max_concurrent_accounts=3)

        results = await strategy.execute(build_run(config))

        assert [r.account_id for r in results] == accounts(7)
        assert client.max_in_flight == 3
        assert clock.monotonic() == pytest.approx(3.0)

    @pytest.mark.asyncio
    async def test_parallel_strategy_waits_rate_limit_between_chunks(self, clock, account_client):
        strategy = ParallelStrategy(build_executor(account_client, clock), clock)
        config = make_config(account_ids=accounts(5), max_concurrent_accounts=2, rate_limit_delay_ms=100)

        await strategy.execute(build_run(config))

        assert clock.sleeps == [0.1, 0.1]

    @pytest.mark.asyncio
    async def test_parallel_strategy_stops_at_chunk_boundary_when_cancelled(self, clock, account_client):
        strategy = ParallelStrategy(build_executor(account_client, clock), clock)
        run = build_run(make_config(account_ids=accounts(6), max_concurrent_accounts=2))

        def cancel_after_first_chunk(processed, current):
            if processed >= 2:
                run.cancel_event.set()

        results = await strategy.execute(run, cancel_after_first_chunk)

        assert len(results) == 2
        assert account_client.calls == accounts(2)

    @pytest.mark.asyncio
    async def test_adaptive_converges_and_beats_sequential(self):
        adaptive_clock = FakeClock()
        adaptive_client = FakeAccountClient(clock=adaptive_clock, latency=2.0)
        adaptive = AdaptiveStrategy(build_executor(adaptive_client, adaptive_clock), adaptive_clock)
        config = make_config(account_ids=accounts(20), max_concurrent_accounts=8, sync_mode=SyncMode.ADAPTIVE)

        adaptive_results = await adaptive.execute(build_run(config))
        adaptive_seconds = adaptive_clock.monotonic()

        sequential_clock = FakeClock()
        sequential_client = FakeAccountClient(clock=sequential_clock, latency=2.0)
        sequential = SequentialStrategy(build_executor(sequential_client, sequential_clock), sequential_clock)

        sequential_results = await sequential.execute(build_run(config))
        sequential_seconds = sequential_clock.monotonic()

        assert len(adaptive_results) == len(sequential_results) == 20
        assert [r.account_id for r in adaptive_results] == accounts(20)
        assert adaptive.controller.peak_chunk_size > 1
        assert [s.chunk_size for s in adaptive.controller.history] == [1, 2, 4, 8, 5]
        assert adaptive_client.max_in_flight == 8
        assert adaptive_seconds == pytest.approx(10.0)
        assert sequential_seconds == pytest.approx(40.0)
        assert adaptive_seconds < sequential_seconds

    @pytest.mark.asyncio
    async def test_adaptive_backs_off_under_slow_accounts(self):
        clock = FakeClock()
        client = FakeAccountClient(clock=clock, latency=30.0)
        strategy = AdaptiveStrategy(build_executor(client, clock), clock)
        config = make_config(account_ids=accounts(4), max_concurrent_accounts=8)

        await strategy.execute(build_run(config))

        # 2 accounts per minute never clears the scale-up threshold
        assert [s.chunk_size for s in strategy.controller.history] == [1, 1, 1, 1]
        assert client.max_in_flight == 1


class TestStrategyRunner:
    @pytest.mark.parametrize(
        "mode,expected",
        [
            (SyncMode.SEQUENTIAL, SequentialStrategy),
            (SyncMode.PARALLEL, ParallelStrategy),
            (SyncMode.ADAPTIVE, AdaptiveStrategy),
        ],
    )
    def test_strategy_for_mode(self, clock, account_client, mode, expected):
        runner = StrategyRunner(build_executor(account_client, clock), clock, make_settings())

        assert isinstance(runner.strategy_for(mode), expected)

    def test_adaptive_thresholds_come_from_settings(self, clock, account_client):
        settings = make_settings(adaptive_scale_up_threshold=60.0, adaptive_scale_down_threshold=5.0)
        runner = StrategyRunner(build_executor(account_client, clock), clock, settings)

        strategy = runner.strategy_for(SyncMode.ADAPTIVE)

        assert strategy.scale_up_threshold == 60.0
        assert strategy.scale_down_threshold == 5.0

    @pytest.mark.asyncio
    async def test_run_dispatches_on_config_mode(self, clock):
        client = FakeAccountClient(clock=clock, latency=1.0)
        runner = StrategyRunner(build_executor(client, clock), clock, make_settings())
        config = make_config(sync_mode=SyncMode.PARALLEL, max_concurrent_accounts=3)

        results = await runner.run(build_run(config))

        assert len(results) == 3
        assert client.max_in_flight == 3
