"""API services module."""

from batchsync.api.services.account_client import (
    AccountSyncClient,
    PlaceholderAccountSyncClient,
    SyncOptions,
)

__all__ = [
    "AccountSyncClient",
    "PlaceholderAccountSyncClient",
    "SyncOptions",
]
