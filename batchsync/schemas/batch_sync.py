"""Pydantic models for batch sync configurations, runs and progress."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from batchsync.core.config import get_settings


class SyncMode(str, Enum):
    """Execution strategy for a configuration."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    ADAPTIVE = "adaptive"


class SyncPriority(str, Enum):
    """Queue priority of a configuration."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def weight(self) -> int:
        """Numeric weight used for queue ordering (higher runs first)."""
        return PRIORITY_WEIGHTS[self]


PRIORITY_WEIGHTS = {
    SyncPriority.HIGH: 3,
    SyncPriority.MEDIUM: 2,
    SyncPriority.LOW: 1,
}


class SyncStatus(str, Enum):
    """Status of a batch sync run."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PARTIAL = "partial"


TERMINAL_STATUSES = frozenset({
    SyncStatus.COMPLETED,
    SyncStatus.FAILED,
    SyncStatus.CANCELLED,
    SyncStatus.PARTIAL,
})


class AccountSyncStatus(str, Enum):
    """Outcome of one account within a run."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


# =============================================================================
# Configuration
# =============================================================================


class SyncConditions(BaseModel):
    """Conditions applied to every account of a run.

    Named fields are interpreted by the engine or forwarded to the account
    client. Anything else goes into `extra` untouched.
    """

    version: int = Field(1, ge=1, description="Schema version of the conditions block")
    dry_run: bool = False
    validate_only: bool = False
    include_paused: bool = False
    min_confidence: float | None = Field(None, ge=0, le=1)
    max_updates_per_account: int | None = Field(None, ge=0)
    total_max_updates: int | None = Field(
        None, ge=0, description="Run-wide cap on updated items; later accounts are skipped"
    )
    skip_on_error: bool = Field(
        False, description="Record accounts that exhaust their retries as skipped"
    )
    extra: dict[str, Any] = Field(default_factory=dict)


class BatchSyncConfigBase(BaseModel):
    """Fields shared by create requests and stored configurations."""

    name: str = Field(..., min_length=1, max_length=255)
    account_ids: list[str] = Field(default_factory=list)
    enabled: bool = True
    sync_mode: SyncMode = SyncMode.SEQUENTIAL
    max_concurrent_accounts: int = Field(
        default_factory=lambda: get_settings().default_max_concurrent_accounts, ge=1, le=100
    )
    max_retries: int = Field(default_factory=lambda: get_settings().default_max_retries, ge=0, le=20)
    retry_delay_ms: int = Field(default_factory=lambda: get_settings().default_retry_delay_ms, ge=0)
    timeout_ms: int = Field(
        default_factory=lambda: get_settings().default_timeout_ms,
        ge=0,
        description="Per-account call timeout, 0 disables it",
    )
    rate_limit_delay_ms: int = Field(
        default_factory=lambda: get_settings().default_rate_limit_delay_ms, ge=0
    )
    priority: SyncPriority = SyncPriority.MEDIUM
    conditions: SyncConditions = Field(default_factory=SyncConditions)
    sync_interval_minutes: int | None = Field(
        None, ge=1, description="Schedule a queued run this long after the last one"
    )


class BatchSyncConfigCreate(BatchSyncConfigBase):
    """Schema for creating a configuration."""


class BatchSyncConfigUpdate(BaseModel):
    """Schema for a partial configuration update. Unset fields are left alone."""

    name: str | None = Field(None, min_length=1, max_length=255)
    account_ids: list[str] | None = None
    enabled: bool | None = None
    sync_mode: SyncMode | None = None
    max_concurrent_accounts: int | None = Field(None, ge=1, le=100)
    max_retries: int | None = Field(None, ge=0, le=20)
    retry_delay_ms: int | None = Field(None, ge=0)
    timeout_ms: int | None = Field(None, ge=0)
    rate_limit_delay_ms: int | None = Field(None, ge=0)
    priority: SyncPriority | None = None
    conditions: SyncConditions | None = None
    sync_interval_minutes: int | None = Field(None, ge=1)


class BatchSyncConfig(BatchSyncConfigBase):
    """A named, reusable definition of which accounts to sync and how."""

    id: str
    created_at: datetime
    updated_at: datetime
    last_sync: datetime | None = None
    next_sync: datetime | None = None
    sync_history: list["BatchSyncResult"] = Field(default_factory=list)

    model_config = {"from_attributes": True}


# =============================================================================
# Account level
# =============================================================================


class SubResourceUpdate(BaseModel):
    """A sub-resource (e.g. campaign) touched while syncing an account."""

    resource_id: str
    resource_name: str = ""
    update_count: int = 0


class AccountSyncPayload(BaseModel):
    """What the account client reports for one successful account sync."""

    account_name: str | None = None
    total_items: int = Field(0, ge=0)
    updated_items: int = Field(0, ge=0)
    failed_items: int = Field(0, ge=0)
    skipped_items: int = Field(0, ge=0)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    confidence: float = Field(0.0, ge=0, le=1)
    top_sub_resources: list[SubResourceUpdate] = Field(default_factory=list)


class AccountSyncResult(BaseModel):
    """Outcome of syncing one account within one run."""

    account_id: str
    account_name: str
    status: AccountSyncStatus
    start_time: datetime
    end_time: datetime | None = None
    processing_time_ms: float = 0
    total_items: int = 0
    updated_items: int = 0
    failed_items: int = 0
    skipped_items: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    retry_count: int = 0
    confidence: float = 0.0
    top_sub_resources: list[SubResourceUpdate] = Field(default_factory=list)


# =============================================================================
# Run level
# =============================================================================


class TopError(BaseModel):
    """A distinct error message with its frequency across accounts."""

    error: str
    count: int
    accounts: list[str] = Field(default_factory=list)


class SyncSummary(BaseModel):
    """Derived metrics of a run."""

    average_confidence: float = 0.0
    accounts_per_minute: float = 0.0
    items_per_minute: float = 0.0
    success_rate: float = 0.0
    top_errors: list[TopError] = Field(default_factory=list)


class BatchSyncResult(BaseModel):
    """One execution of a configuration, terminal or in progress."""

    id: str
    batch_config_id: str
    start_time: datetime
    end_time: datetime | None = None
    processing_time_ms: float = 0
    status: SyncStatus = SyncStatus.RUNNING
    total_accounts: int = 0
    processed_accounts: int = 0
    successful_accounts: int = 0
    failed_accounts: int = 0
    skipped_accounts: int = 0
    total_items: int = 0
    updated_items: int = 0
    failed_items: int = 0
    skipped_items: int = 0
    account_results: list[AccountSyncResult] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    summary: SyncSummary = Field(default_factory=SyncSummary)

    @property
    def is_terminal(self) -> bool:
        """True once the run has left the running state."""
        return self.status in TERMINAL_STATUSES


class ExecuteOptions(BaseModel):
    """Options for an immediate execution."""

    force: bool = Field(False, description="Run even if the configuration is disabled")
    dry_run: bool = False
    account_ids: list[str] | None = Field(
        None, description="Sync only these accounts instead of the configured list"
    )


class SyncProgress(BaseModel):
    """Live progress of a running configuration. Never persisted."""

    batch_config_id: str
    sync_id: str
    status: SyncStatus = SyncStatus.RUNNING
    progress: int = Field(0, ge=0, le=100)
    current_account: str | None = None
    processed_accounts: int = 0
    total_accounts: int = 0
    estimated_time_remaining_ms: float | None = None
    start_time: datetime


# =============================================================================
# Queue and statistics
# =============================================================================


class EnqueueRequest(BaseModel):
    """Request body for queueing a configuration."""

    priority: SyncPriority | None = Field(
        None, description="Defaults to the configuration's own priority"
    )


class QueueSnapshotItem(BaseModel):
    """One row of the queue snapshot."""

    config_id: str
    position: int
    priority: int
    enqueued_at: datetime
    config: BatchSyncConfig | None = None


class BatchSyncStats(BaseModel):
    """Engine-wide statistics."""

    total_configs: int = 0
    enabled_configs: int = 0
    running_syncs: int = 0
    queued_syncs: int = 0
    today_syncs: int = 0
    success_rate: float = 0.0
    average_processing_time_ms: float = 0.0
    total_accounts_synced: int = 0
    total_items_updated: int = 0


class ConfigSyncStats(BaseModel):
    """Statistics for a single configuration's history."""

    config_id: str
    total_runs: int = 0
    status_counts: dict[str, int] = Field(default_factory=dict)
    success_rate: float = 0.0
    average_processing_time_ms: float = 0.0
    total_accounts_synced: int = 0
    total_items_updated: int = 0
    last_status: SyncStatus | None = None
    last_sync: datetime | None = None
    next_sync: datetime | None = None
    is_running: bool = False
    is_queued: bool = False


BatchSyncConfig.model_rebuild()
