"""Execution strategies for a batch sync run.

Sequential processes one account at a time. Parallel runs fixed-size chunks of
`max_concurrent_accounts`. Adaptive starts at chunk size 1 and lets an
AdaptiveController grow or shrink the chunk from the throughput of the chunk
that just finished.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from batchsync.core.clock import Clock, elapsed_ms
from batchsync.core.config import Settings, get_settings
from batchsync.core.sync.chunks import ChunkExecutor, chunk_accounts
from batchsync.core.sync.run import SyncRun
from batchsync.schemas.batch_sync import AccountSyncResult, SyncMode

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str | None], None]


def _noop_progress(processed: int, current_account: str | None) -> None:
    return None


class SyncStrategy(ABC):
    """Base class for the three execution strategies.

    Subclasses implement `execute`, returning one AccountSyncResult per account
    that was started, in input order. Cancellation is checked at every chunk
    boundary; accounts not yet started are left out of the returned list.
    """

    mode: SyncMode

    def __init__(self, executor: ChunkExecutor, clock: Clock) -> None:
        self.executor = executor
        self.clock = clock

    @abstractmethod
    async def execute(
        self,
        run: SyncRun,
        on_progress: ProgressCallback = _noop_progress,
    ) -> list[AccountSyncResult]:
        """Run every account of `run` and return their results."""

    async def _pause(self, run: SyncRun) -> None:
        """Rate-limit delay between chunks, skipped once cancelled."""
        if not run.cancelled:
            await self.clock.sleep(run.config.rate_limit_delay_ms / 1000)


class SequentialStrategy(SyncStrategy):
    mode = SyncMode.SEQUENTIAL

    async def execute(
        self,
        run: SyncRun,
        on_progress: ProgressCallback = _noop_progress,
    ) -> list[AccountSyncResult]:
        processed = 0

        def account_done(result: AccountSyncResult) -> None:
            nonlocal processed
            processed += 1
            upcoming = run.account_ids[processed] if processed < run.total_accounts else None
            on_progress(processed, upcoming)

        return await self.executor.run_sequential(run, run.account_ids, on_account=account_done)


class ParallelStrategy(SyncStrategy):
    mode = SyncMode.PARALLEL

    async def execute(
        self,
        run: SyncRun,
        on_progress: ProgressCallback = _noop_progress,
    ) -> list[AccountSyncResult]:
        chunks = chunk_accounts(run.account_ids, run.config.max_concurrent_accounts)
        results: list[AccountSyncResult] = []

        for index, chunk in enumerate(chunks):
            if run.cancelled:
                logger.info(f"Run {run.sync_id} cancelled after {len(results)} accounts")
                break

            on_progress(len(results), chunk[0])
            results.extend(await self.executor.run_parallel(run, chunk))
            on_progress(len(results), None)

            if index < len(chunks) - 1:
                await self._pause(run)

        return results


@dataclass
class ChunkSample:
    """Measured throughput of one adaptive chunk."""

    chunk_size: int
    elapsed_ms: float
    accounts_per_minute: float
    next_chunk_size: int


class AdaptiveController:
    """Hill-climbing controller for the adaptive chunk size.

    Doubles the chunk size (capped at `max_size`) when the last chunk ran at or
    above `scale_up_threshold` accounts per minute and halves it (floor 1) when
    it ran below `scale_down_threshold`. Only the immediately preceding chunk
    is considered.
    """

    def __init__(
        self,
        max_size: int,
        scale_up_threshold: float = 30.0,
        scale_down_threshold: float = 10.0,
    ) -> None:
        self.max_size = max(max_size, 1)
        self.scale_up_threshold = scale_up_threshold
        self.scale_down_threshold = scale_down_threshold
        self.chunk_size = 1
        self.history: list[ChunkSample] = []

    @property
    def mode(self) -> SyncMode:
        return SyncMode.PARALLEL if self.chunk_size > 1 else SyncMode.SEQUENTIAL

    @property
    def peak_chunk_size(self) -> int:
        return max((s.chunk_size for s in self.history), default=self.chunk_size)

    def record_chunk(self, size: int, chunk_elapsed_ms: float) -> int:
        """Feed one chunk's timing and return the next chunk size."""
        if chunk_elapsed_ms <= 0:
            rate = float("inf")
        else:
            rate = size / chunk_elapsed_ms * 60000

        previous = self.chunk_size
        # Inclusive: one account taking 2s is exactly 30/min and must still grow
        if rate >= self.scale_up_threshold and self.chunk_size < self.max_size:
            self.chunk_size = min(self.chunk_size * 2, self.max_size)
        elif rate < self.scale_down_threshold and self.chunk_size > 1:
            self.chunk_size = max(self.chunk_size // 2, 1)

        if self.chunk_size != previous:
            logger.debug(
                f"Adaptive chunk size {previous} -> {self.chunk_size} "
                f"({rate:.1f} accounts/min, mode {self.mode.value})"
            )

        self.history.append(
            ChunkSample(
                chunk_size=size,
                elapsed_ms=chunk_elapsed_ms,
                accounts_per_minute=rate,
                next_chunk_size=self.chunk_size,
            )
        )
        return self.chunk_size


class AdaptiveStrategy(SyncStrategy):
    mode = SyncMode.ADAPTIVE

    def __init__(
        self,
        executor: ChunkExecutor,
        clock: Clock,
        scale_up_threshold: float = 30.0,
        scale_down_threshold: float = 10.0,
    ) -> None:
        super().__init__(executor, clock)
        self.scale_up_threshold = scale_up_threshold
        self.scale_down_threshold = scale_down_threshold
        self.controller: AdaptiveController | None = None

    async def execute(
        self,
        run: SyncRun,
        on_progress: ProgressCallback = _noop_progress,
    ) -> list[AccountSyncResult]:
        controller = AdaptiveController(
            max_size=run.config.max_concurrent_accounts,
            scale_up_threshold=self.scale_up_threshold,
            scale_down_threshold=self.scale_down_threshold,
        )
        self.controller = controller
        results: list[AccountSyncResult] = []
        position = 0

        while position < run.total_accounts:
            if run.cancelled:
                logger.info(f"Run {run.sync_id} cancelled after {len(results)} accounts")
                break

            chunk = run.account_ids[position:position + controller.chunk_size]
            on_progress(len(results), chunk[0])

            started = self.clock.monotonic()
            if controller.mode == SyncMode.SEQUENTIAL:
                results.extend(await self.executor.run_sequential(run, chunk))
            else:
                results.extend(await self.executor.run_parallel(run, chunk))
            controller.record_chunk(len(chunk), elapsed_ms(self.clock, started))

            position += len(chunk)
            on_progress(len(results), None)

            if position < run.total_accounts:
                await self._pause(run)

        return results


class StrategyRunner:
    """Picks the strategy for a configuration's mode and runs it."""

    def __init__(self, executor: ChunkExecutor, clock: Clock, settings: Settings | None = None) -> None:
        self.executor = executor
        self.clock = clock
        self.settings = settings or get_settings()

    def strategy_for(self, mode: SyncMode) -> SyncStrategy:
        if mode == SyncMode.PARALLEL:
            return ParallelStrategy(self.executor, self.clock)
        if mode == SyncMode.ADAPTIVE:
            return AdaptiveStrategy(
                self.executor,
                self.clock,
                scale_up_threshold=self.settings.adaptive_scale_up_threshold,
                scale_down_threshold=self.settings.adaptive_scale_down_threshold,
            )
        return SequentialStrategy(self.executor, self.clock)

    async def run(
        self,
        run: SyncRun,
        on_progress: ProgressCallback = _noop_progress,
    ) -> list[AccountSyncResult]:
        strategy = self.strategy_for(run.config.sync_mode)
        logger.info(
            f"Running {strategy.mode.value} strategy for configuration {run.config.id} "
            f"over {run.total_accounts} accounts"
        )
        return await strategy.execute(run, on_progress)
