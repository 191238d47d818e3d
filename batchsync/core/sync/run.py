"""Per-run execution context shared by strategies, chunks and workers."""

import asyncio
from dataclasses import dataclass, field

from batchsync.api.services.account_client import SyncOptions
from batchsync.schemas.batch_sync import BatchSyncConfig, ExecuteOptions


@dataclass
class UpdateBudget:
    """Run-wide cap on updated items across all accounts.

    Workers reserve their share before calling the client and settle it once
    the call returns, so concurrent accounts never draw on the same units.
    A worker finding nothing unreserved waits for in-flight reservations to
    settle instead of skipping early.
    """

    limit: int
    used: int = 0
    reserved: int = 0
    _changed: asyncio.Condition = field(default_factory=asyncio.Condition, repr=False, compare=False)

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used - self.reserved, 0)

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit

    async def reserve(self, cap: int | None = None) -> int | None:
        """Claim up to `cap` unreserved units. Returns None once the budget is used up."""
        async with self._changed:
            await self._changed.wait_for(lambda: self.exhausted or self.remaining > 0)
            if self.exhausted:
                return None
            amount = self.remaining if cap is None else min(cap, self.remaining)
            self.reserved += amount
            return amount

    async def settle(self, reserved: int, used: int) -> None:
        """Release a reservation and record what was actually updated."""
        async with self._changed:
            self.reserved -= reserved
            self.used += used
            self._changed.notify_all()


@dataclass
class SyncRun:
    """Everything a strategy needs to drive one execution of a configuration."""

    config: BatchSyncConfig
    sync_id: str
    account_ids: list[str]
    options: SyncOptions
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    budget: UpdateBudget | None = None
    skip_on_error: bool = False

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def total_accounts(self) -> int:
        return len(self.account_ids)

    @classmethod
    def build(
        cls,
        config: BatchSyncConfig,
        sync_id: str,
        options: ExecuteOptions,
    ) -> "SyncRun":
        """Resolve execute options and config conditions into a run context.

        An explicit `account_ids` list (even an empty one) replaces the
        configured accounts.
        """
        conditions = config.conditions
        account_ids = list(options.account_ids) if options.account_ids is not None else list(config.account_ids)
        cancel_event = asyncio.Event()

        client_options = SyncOptions(
            force=options.force,
            dry_run=options.dry_run or conditions.dry_run,
            validate_only=conditions.validate_only,
            include_paused=conditions.include_paused,
            min_confidence=conditions.min_confidence,
            max_updates=conditions.max_updates_per_account,
            cancel_event=cancel_event,
        )

        budget = None
        if conditions.total_max_updates is not None:
            budget = UpdateBudget(limit=conditions.total_max_updates)

        return cls(
            config=config,
            sync_id=sync_id,
            account_ids=account_ids,
            options=client_options,
            cancel_event=cancel_event,
            budget=budget,
            skip_on_error=conditions.skip_on_error,
        )
