"""Batch sync exceptions.

Configuration-level errors (unknown id, disabled, already running, nothing to
cancel) are raised synchronously to the caller with no side effects.
Account-level failures never leave the worker. Strategy-level failures mark
the whole run as failed.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from batchsync.schemas.batch_sync import BatchSyncResult


class BatchSyncError(Exception):
    """Base class for all batch sync errors."""

    def __init__(self, message: str, config_id: str | None = None) -> None:
        super().__init__(message)
        self.config_id = config_id


class NotFoundError(BatchSyncError):
    """Raised when a configuration id is unknown."""


class AlreadyRunningError(BatchSyncError):
    """Raised when a configuration already has an active run."""


class DisabledError(BatchSyncError):
    """Raised when executing or queueing a disabled configuration without force."""


class NotRunningError(BatchSyncError):
    """Raised when cancelling a configuration that has no active run."""


class AccountSyncFailure(BatchSyncError):
    """Raised for a failed attempt against a single account.

    This is a recoverable error: the worker captures it into a failed
    AccountSyncResult and sibling accounts keep running.
    """

    def __init__(self, message: str, account_id: str, config_id: str | None = None) -> None:
        super().__init__(message, config_id=config_id)
        self.account_id = account_id


class StrategyFailure(BatchSyncError):
    """Raised when chunk orchestration fails and the whole run is marked failed.

    The failed result has already been recorded into history when this is raised.
    """

    def __init__(
        self,
        message: str,
        config_id: str | None = None,
        result: "BatchSyncResult | None" = None,
    ) -> None:
        super().__init__(message, config_id=config_id)
        self.result = result
