"""API routes module."""

from batchsync.api.routes.batch_sync import router as batch_sync_router

__all__ = [
    "batch_sync_router",
]
