"""Batch sync API routes.

Configuration CRUD, immediate execution, queueing, cancellation, live
progress and statistics.
"""

import logging
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status

from batchsync.api.dependencies import get_engine
from batchsync.core.exceptions import (
    AlreadyRunningError,
    BatchSyncError,
    DisabledError,
    NotFoundError,
    NotRunningError,
    StrategyFailure,
)
from batchsync.core.sync.engine import BatchSyncEngine
from batchsync.schemas.batch_sync import (
    BatchSyncConfig,
    BatchSyncConfigCreate,
    BatchSyncConfigUpdate,
    BatchSyncResult,
    BatchSyncStats,
    ConfigSyncStats,
    EnqueueRequest,
    ExecuteOptions,
    QueueSnapshotItem,
    SyncProgress,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/batch-sync",
    tags=["batch-sync"],
)

ConfigId = Annotated[str, Path(min_length=1, max_length=64, description="Configuration ID")]


def _raise_http(error: BatchSyncError) -> NoReturn:
    """Translate an engine error into the matching HTTP error."""
    if isinstance(error, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, (AlreadyRunningError, DisabledError, NotRunningError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


# ============================================================================
# Configurations
# ============================================================================


@router.get("/configs", response_model=list[BatchSyncConfig])
async def list_configs(engine: BatchSyncEngine = Depends(get_engine)):
    """List all batch sync configurations."""
    return engine.get_configs()


@router.post("/configs", response_model=BatchSyncConfig, status_code=status.HTTP_201_CREATED)
async def create_config(
    spec: BatchSyncConfigCreate,
    engine: BatchSyncEngine = Depends(get_engine),
):
    """Create a batch sync configuration."""
    return await engine.create_config(spec)


@router.get("/configs/{config_id}", response_model=BatchSyncConfig)
async def get_config(
    config_id: ConfigId,
    engine: BatchSyncEngine = Depends(get_engine),
):
    """Get one configuration with its history."""
    try:
        return engine.get_config(config_id)
    except BatchSyncError as e:
        _raise_http(e)


@router.patch("/configs/{config_id}", response_model=BatchSyncConfig)
async def update_config(
    config_id: ConfigId,
    update: BatchSyncConfigUpdate,
    engine: BatchSyncEngine = Depends(get_engine),
):
    """Partially update a configuration."""
    try:
        return await engine.update_config(config_id, update)
    except BatchSyncError as e:
        _raise_http(e)


@router.delete("/configs/{config_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_config(
    config_id: ConfigId,
    engine: BatchSyncEngine = Depends(get_engine),
):
    """Delete a configuration, cancelling its active run first."""
    try:
        await engine.delete_config(config_id)
    except BatchSyncError as e:
        _raise_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Execution
# ============================================================================


@router.post("/configs/{config_id}/execute", response_model=BatchSyncResult)
async def execute_config(
    config_id: ConfigId,
    options: ExecuteOptions | None = None,
    engine: BatchSyncEngine = Depends(get_engine),
):
    """Run a configuration now and wait for the result.

    A failed orchestration still returns the recorded failed result.
    """
    try:
        return await engine.execute_now(config_id, options)
    except StrategyFailure as e:
        logger.error(f"Batch sync for configuration {config_id} failed: {e}")
        return e.result
    except BatchSyncError as e:
        _raise_http(e)


@router.post("/configs/{config_id}/queue", status_code=status.HTTP_202_ACCEPTED)
async def queue_config(
    config_id: ConfigId,
    request: EnqueueRequest | None = None,
    engine: BatchSyncEngine = Depends(get_engine),
):
    """Queue a configuration for background execution."""
    priority = request.priority if request else None
    try:
        entry = await engine.enqueue(config_id, priority)
    except BatchSyncError as e:
        _raise_http(e)

    return {
        "status": "queued",
        "config_id": entry.config_id,
        "priority": entry.priority,
        "enqueued_at": entry.enqueued_at.isoformat(),
        "queue_length": len(engine.queue),
    }


@router.post("/configs/{config_id}/cancel", response_model=BatchSyncResult)
async def cancel_config(
    config_id: ConfigId,
    engine: BatchSyncEngine = Depends(get_engine),
):
    """Cancel the active run of a configuration."""
    try:
        return await engine.cancel(config_id)
    except BatchSyncError as e:
        _raise_http(e)


@router.get("/running", response_model=list[BatchSyncResult])
async def list_running(engine: BatchSyncEngine = Depends(get_engine)):
    """List active runs."""
    return engine.get_running_results()


@router.get("/queue", response_model=list[QueueSnapshotItem])
async def get_queue(engine: BatchSyncEngine = Depends(get_engine)):
    """Get queued runs in dispatch order."""
    return engine.get_queue_snapshot()


# ============================================================================
# Progress and statistics
# ============================================================================


@router.get("/progress", response_model=list[SyncProgress])
async def list_progress(engine: BatchSyncEngine = Depends(get_engine)):
    return engine.get_all_progress()


@router.get("/configs/{config_id}/progress", response_model=SyncProgress)
async def get_progress(
    config_id: ConfigId,
    engine: BatchSyncEngine = Depends(get_engine),
):
    """Get live progress of a running configuration."""
    progress = engine.get_progress(config_id)
    if progress is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No sync in progress for configuration {config_id}",
        )
    return progress


@router.get("/stats", response_model=BatchSyncStats)
async def get_stats(engine: BatchSyncEngine = Depends(get_engine)):
    return engine.get_stats()


@router.get("/configs/{config_id}/stats", response_model=ConfigSyncStats)
async def get_config_stats(
    config_id: ConfigId,
    engine: BatchSyncEngine = Depends(get_engine),
):
    """Get history statistics for one configuration."""
    try:
        return engine.get_config_stats(config_id)
    except BatchSyncError as e:
        _raise_http(e)
