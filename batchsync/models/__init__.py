"""Database models module."""

from batchsync.models.batch_sync import BatchSyncConfigRecord

__all__ = [
    "BatchSyncConfigRecord",
]
