"""Account sync client contract and the placeholder implementation.

The engine only depends on `AccountSyncClient`. A real deployment plugs in a
client that talks to the downstream advertising system.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from batchsync.schemas.batch_sync import AccountSyncPayload, SubResourceUpdate

if TYPE_CHECKING:
    from batchsync.schemas.batch_sync import BatchSyncConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOptions:
    """Per-call options handed to the account client.

    `cancel_event` is set when the run is cancelled. Clients that can abort an
    in-flight call should watch it; others may ignore it.
    """

    force: bool = False
    dry_run: bool = False
    validate_only: bool = False
    include_paused: bool = False
    min_confidence: float | None = None
    max_updates: int | None = None
    cancel_event: asyncio.Event | None = None

    @property
    def cancelled(self) -> bool:
        """True once the owning run has been cancelled."""
        return self.cancel_event is not None and self.cancel_event.is_set()


class AccountSyncClient(Protocol):
    """Synchronizes one account against the downstream system.

    Must be safe to call concurrently for different account ids. Returns an
    AccountSyncPayload (or a mapping with the same keys) or raises.
    """

    async def sync_account(
        self,
        config: "BatchSyncConfig",
        account_id: str,
        options: SyncOptions,
    ) -> AccountSyncPayload | dict[str, Any]:
        ...


class PlaceholderAccountSyncClient:
    """Stand-in client that reports a fixed, plausible outcome per account."""

    def __init__(self, latency_seconds: float = 0.0) -> None:
        self.latency_seconds = latency_seconds

    async def sync_account(
        self,
        config: "BatchSyncConfig",
        account_id: str,
        options: SyncOptions,
    ) -> AccountSyncPayload:
        logger.info(f"Syncing account {account_id} for configuration {config.id}")

        if self.latency_seconds > 0:
            await asyncio.sleep(self.latency_seconds)

        updated = 120
        if options.max_updates is not None:
            updated = min(updated, options.max_updates)

        warnings = ["Some items were skipped due to low confidence"]
        if options.dry_run:
            warnings.append("Dry run: no changes were written")

        return AccountSyncPayload(
            account_name=f"Account {account_id}",
            total_items=150,
            updated_items=updated,
            failed_items=5,
            skipped_items=150 - updated - 5,
            warnings=warnings,
            confidence=0.85,
            top_sub_resources=[
                SubResourceUpdate(resource_id="camp1", resource_name="Search Campaign", update_count=45),
                SubResourceUpdate(resource_id="camp2", resource_name="Display Campaign", update_count=32),
            ],
        )
