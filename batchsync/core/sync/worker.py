"""Single-account sync with bounded retry and per-call timeout."""

import asyncio
import dataclasses
import logging
from datetime import datetime

from batchsync.api.services.account_client import AccountSyncClient, SyncOptions
from batchsync.core.clock import Clock, elapsed_ms
from batchsync.core.exceptions import AccountSyncFailure
from batchsync.core.retry import linear_backoff_seconds
from batchsync.core.sync.run import SyncRun
from batchsync.schemas.batch_sync import (
    AccountSyncPayload,
    AccountSyncResult,
    AccountSyncStatus,
)

logger = logging.getLogger(__name__)


class AccountSyncWorker:
    """Runs the client call for one account up to `max_retries + 1` times.

    `run()` never raises for account-level problems: every failure ends up in
    the returned AccountSyncResult so sibling accounts are unaffected.
    """

    def __init__(self, client: AccountSyncClient, clock: Clock) -> None:
        self.client = client
        self.clock = clock

    async def run(self, run: SyncRun, account_id: str) -> AccountSyncResult:
        config = run.config
        start_time = self.clock.now()
        started = self.clock.monotonic()

        attempts = config.max_retries + 1
        attempt = 0
        last_error = ""

        for attempt in range(1, attempts + 1):
            options = run.options
            reserved = None
            if run.budget is not None:
                reserved = await run.budget.reserve(options.max_updates)
                if reserved is None:
                    return self._skip_for_budget(run, account_id, start_time)
                options = dataclasses.replace(options, max_updates=reserved)

            payload = None
            try:
                payload = await self._attempt(run, account_id, options)
            except AccountSyncFailure as e:
                last_error = str(e)
            finally:
                if reserved is not None:
                    await run.budget.settle(reserved, payload.updated_items if payload else 0)

            if payload is None:
                logger.warning(
                    f"Account {account_id} attempt {attempt}/{attempts} failed "
                    f"for configuration {config.id}: {last_error}"
                )
                if attempt < attempts:
                    if run.cancelled:
                        logger.info(f"Run {run.sync_id} cancelled, not retrying account {account_id}")
                        break
                    await self.clock.sleep(linear_backoff_seconds(config.retry_delay_ms, attempt))
                continue

            return AccountSyncResult(
                account_id=account_id,
                account_name=payload.account_name or _default_name(account_id),
                status=AccountSyncStatus.COMPLETED,
                start_time=start_time,
                end_time=self.clock.now(),
                processing_time_ms=elapsed_ms(self.clock, started),
                total_items=payload.total_items,
                updated_items=payload.updated_items,
                failed_items=payload.failed_items,
                skipped_items=payload.skipped_items,
                errors=list(payload.errors),
                warnings=list(payload.warnings),
                retry_count=attempt - 1,
                confidence=payload.confidence,
                top_sub_resources=list(payload.top_sub_resources),
            )

        status = AccountSyncStatus.SKIPPED if run.skip_on_error else AccountSyncStatus.FAILED
        logger.error(f"Account {account_id} {status.value} after {attempt} attempts: {last_error}")

        return AccountSyncResult(
            account_id=account_id,
            account_name=_default_name(account_id),
            status=status,
            start_time=start_time,
            end_time=self.clock.now(),
            processing_time_ms=elapsed_ms(self.clock, started),
            errors=[last_error],
            retry_count=attempt,
        )

    def _skip_for_budget(self, run: SyncRun, account_id: str, start_time: datetime) -> AccountSyncResult:
        logger.info(
            f"Update budget of {run.budget.limit} reached, skipping account {account_id} "
            f"in configuration {run.config.id}"
        )
        return AccountSyncResult(
            account_id=account_id,
            account_name=_default_name(account_id),
            status=AccountSyncStatus.SKIPPED,
            start_time=start_time,
            end_time=self.clock.now(),
            warnings=[f"Skipped: run update limit of {run.budget.limit} reached"],
        )

    async def _attempt(self, run: SyncRun, account_id: str, options: SyncOptions) -> AccountSyncPayload:
        """One client call, with every failure normalised to AccountSyncFailure."""
        config = run.config
        try:
            call = self.client.sync_account(config, account_id, options)
            if config.timeout_ms > 0:
                raw = await asyncio.wait_for(call, timeout=config.timeout_ms / 1000)
            else:
                raw = await call
            if isinstance(raw, AccountSyncPayload):
                return raw
            return AccountSyncPayload.model_validate(raw)
        except TimeoutError as e:
            raise AccountSyncFailure(
                f"Account sync timed out after {config.timeout_ms}ms", account_id, config.id
            ) from e
        except Exception as e:
            raise AccountSyncFailure(str(e) or type(e).__name__, account_id, config.id) from e


def _default_name(account_id: str) -> str:
    return f"Account {account_id}"
