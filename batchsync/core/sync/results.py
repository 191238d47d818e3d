"""Aggregation of account outcomes into run results and summaries."""

from collections import Counter
from datetime import datetime

from batchsync.schemas.batch_sync import (
    AccountSyncResult,
    AccountSyncStatus,
    BatchSyncResult,
    SyncStatus,
    SyncSummary,
    TopError,
)

TOP_ERRORS_LIMIT = 5


def determine_status(account_results: list[AccountSyncResult]) -> SyncStatus:
    """Terminal status of a run that was not cancelled."""
    if not account_results:
        return SyncStatus.COMPLETED

    completed = sum(1 for r in account_results if r.status == AccountSyncStatus.COMPLETED)
    if completed == len(account_results):
        return SyncStatus.COMPLETED
    if completed > 0:
        return SyncStatus.PARTIAL
    return SyncStatus.FAILED


def average_confidence(account_results: list[AccountSyncResult]) -> float:
    if not account_results:
        return 0.0
    return sum(r.confidence for r in account_results) / len(account_results)


def success_rate(successful: int, processed: int) -> float:
    """Percentage of processed accounts that completed, 0 when nothing ran."""
    if processed <= 0:
        return 0.0
    return successful / processed * 100


def per_minute(count: int, elapsed_ms: float) -> float:
    if elapsed_ms <= 0:
        return 0.0
    return count / elapsed_ms * 60000


def top_errors(account_results: list[AccountSyncResult], limit: int = TOP_ERRORS_LIMIT) -> list[TopError]:
    """Most frequent distinct error strings with the accounts that hit them.

    Ties keep first-seen order.
    """
    counts: Counter[str] = Counter()
    accounts: dict[str, list[str]] = {}

    for account in account_results:
        for error in account.errors:
            counts[error] += 1
            affected = accounts.setdefault(error, [])
            if account.account_id not in affected:
                affected.append(account.account_id)

    return [
        TopError(error=error, count=count, accounts=accounts[error])
        for error, count in counts.most_common(limit)
    ]


def apply_account_results(result: BatchSyncResult, account_results: list[AccountSyncResult]) -> None:
    """Recompute every counter of `result` from its account outcomes."""
    result.account_results = list(account_results)
    result.processed_accounts = len(account_results)
    result.successful_accounts = 0
    result.failed_accounts = 0
    result.skipped_accounts = 0
    result.total_items = 0
    result.updated_items = 0
    result.failed_items = 0
    result.skipped_items = 0

    for account in account_results:
        if account.status == AccountSyncStatus.COMPLETED:
            result.successful_accounts += 1
        elif account.status == AccountSyncStatus.FAILED:
            result.failed_accounts += 1
        else:
            result.skipped_accounts += 1

        result.total_items += account.total_items
        result.updated_items += account.updated_items
        result.failed_items += account.failed_items
        result.skipped_items += account.skipped_items


def build_summary(result: BatchSyncResult) -> SyncSummary:
    return SyncSummary(
        average_confidence=average_confidence(result.account_results),
        accounts_per_minute=per_minute(result.processed_accounts, result.processing_time_ms),
        items_per_minute=per_minute(result.total_items, result.processing_time_ms),
        success_rate=success_rate(result.successful_accounts, result.processed_accounts),
        top_errors=top_errors(result.account_results),
    )


def finalize_result(
    result: BatchSyncResult,
    account_results: list[AccountSyncResult],
    end_time: datetime,
    processing_time_ms: float,
    status: SyncStatus | None = None,
) -> BatchSyncResult:
    """Fill counters, timing, status and summary of a finished run."""
    apply_account_results(result, account_results)
    result.end_time = end_time
    result.processing_time_ms = processing_time_ms
    result.status = status if status is not None else determine_status(account_results)
    result.summary = build_summary(result)
    return result
