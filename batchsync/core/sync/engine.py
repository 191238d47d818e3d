"""Batch sync engine.

Owns the configuration registry, the active-run map, the priority queue and
the live progress records, and drives executions through the StrategyRunner.
All registry and active-run mutations happen under one asyncio.Lock so that at
most one run per configuration can be active at any time.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta

from batchsync.api.services.account_client import AccountSyncClient
from batchsync.core.clock import Clock, SystemClock, elapsed_ms
from batchsync.core.config import Settings, get_settings
from batchsync.core.exceptions import (
    AlreadyRunningError,
    DisabledError,
    NotFoundError,
    NotRunningError,
    StrategyFailure,
)
from batchsync.core.store import ConfigStore, InMemoryConfigStore
from batchsync.core.sync.chunks import ChunkExecutor
from batchsync.core.sync.progress import ProgressTracker
from batchsync.core.sync.queue import DispatchDecision, QueueDispatcher, QueueEntry, SyncQueue
from batchsync.core.sync.results import finalize_result
from batchsync.core.sync.run import SyncRun
from batchsync.core.sync.stats import StatsAggregator
from batchsync.core.sync.strategies import StrategyRunner
from batchsync.core.sync.worker import AccountSyncWorker
from batchsync.schemas.batch_sync import (
    BatchSyncConfig,
    BatchSyncConfigCreate,
    BatchSyncConfigUpdate,
    BatchSyncResult,
    BatchSyncStats,
    ConfigSyncStats,
    ExecuteOptions,
    QueueSnapshotItem,
    SyncPriority,
    SyncProgress,
    SyncStatus,
)

logger = logging.getLogger(__name__)

# Update fields that may be explicitly cleared with null
NULLABLE_UPDATE_FIELDS = {"sync_interval_minutes"}


class BatchSyncEngine:
    """Façade over the registry, queue, strategies, progress and stats."""

    def __init__(
        self,
        client: AccountSyncClient,
        store: ConfigStore | None = None,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.store = store if store is not None else InMemoryConfigStore()
        self.client = client

        self._configs: dict[str, BatchSyncConfig] = {}
        self._running: dict[str, BatchSyncResult] = {}
        self._runs: dict[str, SyncRun] = {}
        self._lock = asyncio.Lock()
        self._started = False

        self.worker = AccountSyncWorker(client, self.clock)
        self.executor = ChunkExecutor(self.worker, self.clock)
        self.runner = StrategyRunner(self.executor, self.clock, self.settings)
        self.progress = ProgressTracker(self.clock)
        self.queue = SyncQueue(self.clock)
        self.dispatcher = QueueDispatcher(
            self.queue,
            check=self._dispatch_decision,
            execute=self._execute_queued,
            clock=self.clock,
            delay_seconds=self.settings.queue_dispatch_delay_seconds,
            requeue_busy=self.settings.requeue_busy_configs,
        )
        self.stats = StatsAggregator(self.clock)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Load stored configurations and start dispatching queued runs."""
        try:
            stored = await self.store.load_all()
        except Exception as e:
            logger.error(f"Failed to load batch sync configurations: {e}", exc_info=True)
            stored = []

        async with self._lock:
            for config in stored:
                self._configs.setdefault(config.id, config)
            self._started = True

        logger.info(f"Batch sync engine started with {len(self._configs)} configurations")
        self.dispatcher.trigger()

    async def stop(self) -> None:
        """Stop dispatching and cancel every active run."""
        self._started = False
        await self.dispatcher.stop()
        for config_id in list(self._running):
            try:
                await self.cancel(config_id)
            except NotRunningError:
                continue
        logger.info("Batch sync engine stopped")

    # =========================================================================
    # Configuration registry
    # =========================================================================

    async def create_config(self, spec: BatchSyncConfigCreate) -> BatchSyncConfig:
        now = self.clock.now()
        config = BatchSyncConfig(
            **spec.model_dump(),
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
        )
        self._schedule_next(config, now)

        async with self._lock:
            self._configs[config.id] = config
            snapshot = config.model_copy(deep=True)

        logger.info(f"Created batch sync configuration {config.id} ({config.name})")
        await self._persist(snapshot)
        return snapshot

    async def update_config(self, config_id: str, update: BatchSyncConfigUpdate) -> BatchSyncConfig:
        changes = {
            field: value
            for field, value in update.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_UPDATE_FIELDS
        }

        async with self._lock:
            current = self._require(config_id)
            now = self.clock.now()
            config = BatchSyncConfig.model_validate({**current.model_dump(), **changes, "updated_at": now})
            if "sync_interval_minutes" in changes:
                self._schedule_next(config, config.last_sync or now)
            self._configs[config_id] = config
            snapshot = config.model_copy(deep=True)

        logger.info(f"Updated batch sync configuration {config_id}: {sorted(changes)}")
        await self._persist(snapshot)
        return snapshot

    async def delete_config(self, config_id: str) -> None:
        """Remove a configuration, cancelling its active run first."""
        async with self._lock:
            self._require(config_id)
            if config_id in self._running:
                self._cancel_locked(config_id)
            del self._configs[config_id]
            self.queue.remove(config_id)
            self.progress.finish(config_id)

        logger.info(f"Deleted batch sync configuration {config_id}")
        try:
            await self.store.delete(config_id)
        except Exception as e:
            logger.error(f"Failed to delete stored configuration {config_id}: {e}", exc_info=True)

    def get_configs(self) -> list[BatchSyncConfig]:
        return [config.model_copy(deep=True) for config in self._configs.values()]

    def get_config(self, config_id: str) -> BatchSyncConfig:
        return self._require(config_id).model_copy(deep=True)

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_now(self, config_id: str, options: ExecuteOptions | None = None) -> BatchSyncResult:
        """Run a configuration to completion and return the recorded result.

        Raises:
            NotFoundError: unknown configuration
            AlreadyRunningError: a run is already active for the configuration
            DisabledError: configuration is disabled and `force` is not set
            StrategyFailure: orchestration failed; the failed result is recorded
        """
        options = options or ExecuteOptions()

        async with self._lock:
            config = self._require(config_id)
            if config_id in self._running:
                raise AlreadyRunningError(f"Configuration {config_id} is already running", config_id)
            if not config.enabled and not options.force:
                raise DisabledError(f"Configuration {config_id} is disabled", config_id)

            sync_id = str(uuid.uuid4())
            run = SyncRun.build(config.model_copy(update={"sync_history": []}, deep=True), sync_id, options)
            result = BatchSyncResult(
                id=sync_id,
                batch_config_id=config_id,
                start_time=self.clock.now(),
                total_accounts=run.total_accounts,
            )
            self._running[config_id] = result
            self._runs[config_id] = run
            self.progress.start(
                config_id,
                sync_id,
                run.total_accounts,
                run.account_ids[0] if run.account_ids else None,
            )

        logger.info(
            f"Starting batch sync {sync_id} for configuration {config_id} "
            f"({run.total_accounts} accounts, mode {config.sync_mode.value})"
        )
        started = self.clock.monotonic()

        def on_progress(processed: int, current_account: str | None) -> None:
            self.progress.update(config_id, sync_id, processed, current_account)

        try:
            try:
                account_results = await self.runner.run(run, on_progress)
            except asyncio.CancelledError:
                # Task cancelled from outside (dispatcher stop, shutdown)
                async with self._lock:
                    if self._running.get(config_id) is result:
                        self._cancel_locked(config_id)
                await self._persist_config(config_id)
                raise
            except Exception as e:
                logger.error(f"Batch sync {sync_id} failed: {e}", exc_info=True)
                async with self._lock:
                    cancelled = result.is_terminal
                    if not cancelled:
                        finalize_result(
                            result,
                            [],
                            self.clock.now(),
                            elapsed_ms(self.clock, started),
                            status=SyncStatus.FAILED,
                        )
                        result.errors.append(f"Strategy failure: {e}")
                        self._record_locked(config_id, result)
                    snapshot = result.model_copy(deep=True)
                if cancelled:
                    return snapshot
                await self._persist_config(config_id)
                raise StrategyFailure(str(e), config_id, result=snapshot) from e

            async with self._lock:
                if result.is_terminal:
                    logger.info(
                        f"Batch sync {sync_id} was cancelled, discarding {len(account_results)} account results"
                    )
                    return result.model_copy(deep=True)
                finalize_result(result, account_results, self.clock.now(), elapsed_ms(self.clock, started))
                self._record_locked(config_id, result)
                snapshot = result.model_copy(deep=True)

            logger.info(
                f"Batch sync {sync_id} finished with status {snapshot.status.value}: "
                f"{snapshot.successful_accounts} succeeded, {snapshot.failed_accounts} failed, "
                f"{snapshot.skipped_accounts} skipped"
            )
            await self._persist_config(config_id)
            return snapshot
        finally:
            async with self._lock:
                self._release_locked(config_id, result)

    async def cancel(self, config_id: str) -> BatchSyncResult:
        """Mark the active run cancelled and free its slot at once.

        Accounts already in flight finish on their own; their results are not
        incorporated.
        """
        async with self._lock:
            self._require(config_id)
            if config_id not in self._running:
                raise NotRunningError(f"Configuration {config_id} has no active run", config_id)
            snapshot = self._cancel_locked(config_id)

        await self._persist_config(config_id)
        return snapshot

    def get_running_results(self) -> list[BatchSyncResult]:
        return [result.model_copy(deep=True) for result in self._running.values()]

    def is_running(self, config_id: str) -> bool:
        return config_id in self._running

    # =========================================================================
    # Queue
    # =========================================================================

    async def enqueue(self, config_id: str, priority: SyncPriority | None = None) -> QueueEntry:
        """Queue a run; re-queueing an already queued id only re-prioritizes it."""
        async with self._lock:
            config = self._require(config_id)
            if not config.enabled:
                raise DisabledError(f"Configuration {config_id} is disabled", config_id)
            weight = (priority or config.priority).weight
            entry = self.queue.push(config_id, weight)

        if self._started:
            self.dispatcher.trigger()
        return QueueEntry(entry.config_id, entry.priority, entry.enqueued_at, entry.sequence)

    def get_queue_snapshot(self) -> list[QueueSnapshotItem]:
        snapshot = []
        for position, entry in enumerate(self.queue.entries(), start=1):
            config = self._configs.get(entry.config_id)
            snapshot.append(
                QueueSnapshotItem(
                    config_id=entry.config_id,
                    position=position,
                    priority=entry.priority,
                    enqueued_at=entry.enqueued_at,
                    config=config.model_copy(deep=True) if config is not None else None,
                )
            )
        return snapshot

    def _dispatch_decision(self, config_id: str) -> DispatchDecision:
        config = self._configs.get(config_id)
        if config is None:
            return DispatchDecision.MISSING
        if not config.enabled:
            return DispatchDecision.DISABLED
        if config_id in self._running:
            return DispatchDecision.BUSY
        return DispatchDecision.READY

    async def _execute_queued(self, config_id: str) -> BatchSyncResult:
        return await self.execute_now(config_id, ExecuteOptions())

    # =========================================================================
    # Progress and stats
    # =========================================================================

    def get_progress(self, config_id: str) -> SyncProgress | None:
        return self.progress.get(config_id)

    def get_all_progress(self) -> list[SyncProgress]:
        return self.progress.all()

    def get_stats(self) -> BatchSyncStats:
        return self.stats.engine_stats(
            self._configs.values(),
            running_syncs=len(self._running),
            queued_syncs=len(self.queue),
        )

    def get_config_stats(self, config_id: str) -> ConfigSyncStats:
        config = self._require(config_id)
        return self.stats.config_stats(
            config,
            is_running=config_id in self._running,
            is_queued=config_id in self.queue,
        )

    # =========================================================================
    # Scheduled maintenance
    # =========================================================================

    async def enqueue_due(self, now: datetime | None = None) -> list[str]:
        """Queue every enabled configuration whose next_sync has passed."""
        now = now or self.clock.now()
        due = [
            config.id
            for config in self._configs.values()
            if config.enabled
            and config.next_sync is not None
            and config.next_sync <= now
            and config.id not in self._running
            and config.id not in self.queue
        ]
        queued = []
        for config_id in due:
            try:
                await self.enqueue(config_id)
                queued.append(config_id)
            except (NotFoundError, DisabledError) as e:
                logger.info(f"Skipping scheduled run of {config_id}: {e}")
        if queued:
            logger.info(f"Queued {len(queued)} scheduled batch syncs")
        return queued

    def sweep_progress(self) -> list[str]:
        return self.progress.purge_stale(timedelta(minutes=self.settings.progress_ttl_minutes))

    # =========================================================================
    # Internals (callers hold the lock where the name says so)
    # =========================================================================

    def _require(self, config_id: str) -> BatchSyncConfig:
        config = self._configs.get(config_id)
        if config is None:
            raise NotFoundError(f"Batch sync configuration {config_id} not found", config_id)
        return config

    def _schedule_next(self, config: BatchSyncConfig, base: datetime) -> None:
        if config.sync_interval_minutes:
            config.next_sync = base + timedelta(minutes=config.sync_interval_minutes)
        else:
            config.next_sync = None

    def _cancel_locked(self, config_id: str) -> BatchSyncResult:
        result = self._running[config_id]
        run = self._runs.get(config_id)
        if run is not None:
            run.cancel_event.set()

        result.status = SyncStatus.CANCELLED
        result.end_time = self.clock.now()
        result.processing_time_ms = (result.end_time - result.start_time).total_seconds() * 1000
        self._record_locked(config_id, result)
        self._release_locked(config_id, result)

        logger.info(f"Cancelled batch sync {result.id} for configuration {config_id}")
        return result.model_copy(deep=True)

    def _record_locked(self, config_id: str, result: BatchSyncResult) -> None:
        """Append a terminal result to history, trimming the oldest entries."""
        config = self._configs.get(config_id)
        if config is None:
            return
        config.sync_history.append(result.model_copy(deep=True))
        overflow = len(config.sync_history) - self.settings.history_limit
        if overflow > 0:
            del config.sync_history[:overflow]
        config.last_sync = result.end_time
        if result.end_time is not None:
            self._schedule_next(config, result.end_time)

    def _release_locked(self, config_id: str, result: BatchSyncResult) -> None:
        """Clear active and progress state, only if it still belongs to `result`."""
        if self._running.get(config_id) is result:
            del self._running[config_id]
            self._runs.pop(config_id, None)
        self.progress.finish(config_id, result.id)

    async def _persist_config(self, config_id: str) -> None:
        config = self._configs.get(config_id)
        if config is not None:
            await self._persist(config.model_copy(deep=True))

    async def _persist(self, config: BatchSyncConfig) -> None:
        try:
            await self.store.save(config)
        except Exception as e:
            logger.error(f"Failed to save batch sync configuration {config.id}: {e}", exc_info=True)
