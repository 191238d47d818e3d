"""Pydantic schemas for API request/response validation."""

from batchsync.schemas.batch_sync import (
    AccountSyncPayload,
    AccountSyncResult,
    AccountSyncStatus,
    BatchSyncConfig,
    BatchSyncConfigCreate,
    BatchSyncConfigUpdate,
    BatchSyncResult,
    BatchSyncStats,
    ConfigSyncStats,
    EnqueueRequest,
    ExecuteOptions,
    QueueSnapshotItem,
    SubResourceUpdate,
    SyncConditions,
    SyncMode,
    SyncPriority,
    SyncProgress,
    SyncStatus,
    SyncSummary,
    TopError,
)

__all__ = [
    # Configuration
    "BatchSyncConfig",
    "BatchSyncConfigCreate",
    "BatchSyncConfigUpdate",
    "SyncConditions",
    "SyncMode",
    "SyncPriority",
    # Runs
    "BatchSyncResult",
    "SyncStatus",
    "SyncSummary",
    "TopError",
    "ExecuteOptions",
    # Accounts
    "AccountSyncPayload",
    "AccountSyncResult",
    "AccountSyncStatus",
    "SubResourceUpdate",
    # Progress, queue and stats
    "SyncProgress",
    "EnqueueRequest",
    "QueueSnapshotItem",
    "BatchSyncStats",
    "ConfigSyncStats",
]
