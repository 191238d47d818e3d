"""Chunk execution: a batch of accounts run one by one or concurrently."""

import asyncio
import logging
from collections.abc import Callable

from batchsync.core.clock import Clock
from batchsync.core.sync.run import SyncRun
from batchsync.core.sync.worker import AccountSyncWorker
from batchsync.schemas.batch_sync import AccountSyncResult, AccountSyncStatus

logger = logging.getLogger(__name__)

AccountCallback = Callable[[AccountSyncResult], None]


def chunk_accounts(account_ids: list[str], size: int) -> list[list[str]]:
    """Split accounts into consecutive chunks of at most `size`."""
    size = max(size, 1)
    return [account_ids[i:i + size] for i in range(0, len(account_ids), size)]


class ChunkExecutor:
    """Runs chunks of accounts through an AccountSyncWorker."""

    def __init__(self, worker: AccountSyncWorker, clock: Clock) -> None:
        self.worker = worker
        self.clock = clock

    async def run_sequential(
        self,
        run: SyncRun,
        account_ids: list[str],
        on_account: AccountCallback | None = None,
    ) -> list[AccountSyncResult]:
        """Sync accounts one at a time with the rate-limit delay between them.

        Stops before the next account once the run is cancelled.
        """
        results: list[AccountSyncResult] = []
        delay = run.config.rate_limit_delay_ms / 1000

        for index, account_id in enumerate(account_ids):
            if run.cancelled:
                logger.info(f"Run {run.sync_id} cancelled, stopping before account {account_id}")
                break

            result = await self.worker.run(run, account_id)
            results.append(result)
            if on_account is not None:
                on_account(result)

            if index < len(account_ids) - 1 and not run.cancelled:
                await self.clock.sleep(delay)

        return results

    async def run_parallel(self, run: SyncRun, account_ids: list[str]) -> list[AccountSyncResult]:
        """Sync every account of the chunk concurrently and wait for all of them.

        Results keep input order. An exception escaping a worker becomes a
        failed result for that account instead of being lost.
        """
        outcomes = await asyncio.gather(
            *(self.worker.run(run, account_id) for account_id in account_ids),
            return_exceptions=True,
        )

        results: list[AccountSyncResult] = []
        for account_id, outcome in zip(account_ids, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.error(
                    f"Unexpected error syncing account {account_id} in run {run.sync_id}: {outcome}",
                    exc_info=outcome,
                )
                now = self.clock.now()
                results.append(
                    AccountSyncResult(
                        account_id=account_id,
                        account_name=f"Account {account_id}",
                        status=AccountSyncStatus.FAILED,
                        start_time=now,
                        end_time=now,
                        errors=[str(outcome) or type(outcome).__name__],
                    )
                )
            else:
                results.append(outcome)

        return results
