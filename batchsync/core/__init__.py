"""Core module initialization.

`store` and `scheduler` are imported from their modules directly: they depend
on the schemas and models, which themselves read settings from this package.
"""

from batchsync.core.clock import Clock, SystemClock
from batchsync.core.config import Settings, get_settings
from batchsync.core.database import Base, get_db_context, init_db
from batchsync.core.exceptions import (
    AccountSyncFailure,
    AlreadyRunningError,
    BatchSyncError,
    DisabledError,
    NotFoundError,
    NotRunningError,
    StrategyFailure,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "get_db_context",
    "init_db",
    # Time
    "Clock",
    "SystemClock",
    # Errors
    "BatchSyncError",
    "NotFoundError",
    "AlreadyRunningError",
    "DisabledError",
    "NotRunningError",
    "AccountSyncFailure",
    "StrategyFailure",
]
