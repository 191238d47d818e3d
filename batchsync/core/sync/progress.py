"""Live progress records for running configurations."""

import logging
import math
from datetime import timedelta

from batchsync.core.clock import Clock, elapsed_ms
from batchsync.schemas.batch_sync import SyncProgress

logger = logging.getLogger(__name__)


def percent_complete(processed: int, total: int) -> int:
    """Rounded half up, 0 when there is nothing to process."""
    if total <= 0:
        return 0
    return min(math.floor(processed / total * 100 + 0.5), 100)


def estimate_remaining_ms(processed: int, total: int, elapsed: float) -> float | None:
    if processed <= 0:
        return None
    return max(total - processed, 0) * (elapsed / processed)


class ProgressTracker:
    """Owns one SyncProgress per running configuration.

    Updates carry the run's sync id so a finished or cancelled run can never
    overwrite the record of a newer run of the same configuration.
    """

    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self._records: dict[str, SyncProgress] = {}
        self._started: dict[str, float] = {}

    def start(
        self,
        config_id: str,
        sync_id: str,
        total_accounts: int,
        current_account: str | None = None,
    ) -> SyncProgress:
        record = SyncProgress(
            batch_config_id=config_id,
            sync_id=sync_id,
            total_accounts=total_accounts,
            current_account=current_account,
            start_time=self.clock.now(),
        )
        self._records[config_id] = record
        self._started[config_id] = self.clock.monotonic()
        return record.model_copy()

    def update(
        self,
        config_id: str,
        sync_id: str,
        processed_accounts: int,
        current_account: str | None = None,
    ) -> SyncProgress | None:
        record = self._records.get(config_id)
        if record is None or record.sync_id != sync_id:
            return None

        elapsed = elapsed_ms(self.clock, self._started[config_id])
        record.processed_accounts = processed_accounts
        record.current_account = current_account
        record.progress = percent_complete(processed_accounts, record.total_accounts)
        record.estimated_time_remaining_ms = estimate_remaining_ms(
            processed_accounts, record.total_accounts, elapsed
        )
        return record.model_copy()

    def finish(self, config_id: str, sync_id: str | None = None) -> bool:
        """Drop the record, only if it still belongs to `sync_id` when given."""
        record = self._records.get(config_id)
        if record is None:
            return False
        if sync_id is not None and record.sync_id != sync_id:
            return False
        del self._records[config_id]
        self._started.pop(config_id, None)
        return True

    def get(self, config_id: str) -> SyncProgress | None:
        record = self._records.get(config_id)
        return record.model_copy() if record is not None else None

    def all(self) -> list[SyncProgress]:
        return [record.model_copy() for record in self._records.values()]

    def purge_stale(self, max_age: timedelta) -> list[str]:
        """Remove records whose start time is older than `max_age`."""
        cutoff = self.clock.now() - max_age
        stale = [cid for cid, record in self._records.items() if record.start_time < cutoff]
        for config_id in stale:
            self._records.pop(config_id, None)
            self._started.pop(config_id, None)
        if stale:
            logger.warning(f"Purged {len(stale)} stale progress records: {stale}")
        return stale

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, config_id: object) -> bool:
        return config_id in self._records
