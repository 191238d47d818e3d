"""Engine-wide and per-configuration statistics computed from history."""

from collections import Counter
from collections.abc import Iterable

from batchsync.core.clock import Clock
from batchsync.schemas.batch_sync import (
    BatchSyncConfig,
    BatchSyncResult,
    BatchSyncStats,
    ConfigSyncStats,
    SyncStatus,
)


def _completed_rate(results: list[BatchSyncResult]) -> float:
    if not results:
        return 0.0
    completed = sum(1 for r in results if r.status == SyncStatus.COMPLETED)
    return completed / len(results) * 100


def _average_processing_ms(results: list[BatchSyncResult]) -> float:
    if not results:
        return 0.0
    return sum(r.processing_time_ms for r in results) / len(results)


class StatsAggregator:
    """Reads history and live counts on demand. Holds no state of its own."""

    def __init__(self, clock: Clock) -> None:
        self.clock = clock

    def engine_stats(
        self,
        configs: Iterable[BatchSyncConfig],
        running_syncs: int,
        queued_syncs: int,
    ) -> BatchSyncStats:
        configs = list(configs)
        history = [result for config in configs for result in config.sync_history]
        today = self.clock.now().date()

        return BatchSyncStats(
            total_configs=len(configs),
            enabled_configs=sum(1 for c in configs if c.enabled),
            running_syncs=running_syncs,
            queued_syncs=queued_syncs,
            today_syncs=sum(1 for r in history if r.start_time.date() == today),
            success_rate=_completed_rate(history),
            average_processing_time_ms=_average_processing_ms(history),
            total_accounts_synced=sum(r.processed_accounts for r in history),
            total_items_updated=sum(r.updated_items for r in history),
        )

    def config_stats(
        self,
        config: BatchSyncConfig,
        is_running: bool = False,
        is_queued: bool = False,
    ) -> ConfigSyncStats:
        history = config.sync_history
        counts = Counter(r.status.value for r in history)

        return ConfigSyncStats(
            config_id=config.id,
            total_runs=len(history),
            status_counts=dict(counts),
            success_rate=_completed_rate(history),
            average_processing_time_ms=_average_processing_ms(history),
            total_accounts_synced=sum(r.processed_accounts for r in history),
            total_items_updated=sum(r.updated_items for r in history),
            last_status=history[-1].status if history else None,
            last_sync=config.last_sync,
            next_sync=config.next_sync,
            is_running=is_running,
            is_queued=is_queued,
        )
