"""Batch synchronization engine components."""

from batchsync.core.sync.chunks import ChunkExecutor, chunk_accounts
from batchsync.core.sync.engine import BatchSyncEngine
from batchsync.core.sync.progress import ProgressTracker
from batchsync.core.sync.queue import DispatchDecision, QueueDispatcher, QueueEntry, SyncQueue
from batchsync.core.sync.run import SyncRun, UpdateBudget
from batchsync.core.sync.stats import StatsAggregator
from batchsync.core.sync.strategies import (
    AdaptiveController,
    AdaptiveStrategy,
    ParallelStrategy,
    SequentialStrategy,
    StrategyRunner,
    SyncStrategy,
)
from batchsync.core.sync.worker import AccountSyncWorker

__all__ = [
    "AccountSyncWorker",
    "AdaptiveController",
    "AdaptiveStrategy",
    "BatchSyncEngine",
    "ChunkExecutor",
    "DispatchDecision",
    "ParallelStrategy",
    "ProgressTracker",
    "QueueDispatcher",
    "QueueEntry",
    "SequentialStrategy",
    "StatsAggregator",
    "StrategyRunner",
    "SyncQueue",
    "SyncRun",
    "SyncStrategy",
    "UpdateBudget",
    "chunk_accounts",
]
