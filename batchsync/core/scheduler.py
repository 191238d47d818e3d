"""Background maintenance jobs for the batch sync engine."""

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from batchsync.core.config import get_settings

if TYPE_CHECKING:
    from batchsync.core.sync.engine import BatchSyncEngine

logger = logging.getLogger(__name__)
settings = get_settings()

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


async def enqueue_due_syncs(engine: "BatchSyncEngine") -> list[str]:
    """Queue every configuration whose sync interval has elapsed."""
    try:
        return await engine.enqueue_due()
    except Exception as e:
        logger.error(f"Scheduled enqueue of due syncs failed: {e}", exc_info=True)
        return []


async def sweep_stale_progress(engine: "BatchSyncEngine") -> list[str]:
    """Drop progress records left behind by runs older than the TTL."""
    purged = engine.sweep_progress()
    if purged:
        logger.info(f"Progress sweep removed {len(purged)} records")
    return purged


def init_scheduler(engine: "BatchSyncEngine") -> AsyncIOScheduler:
    """Initialize and configure the background scheduler."""
    global scheduler

    scheduler = AsyncIOScheduler()

    # Due-run job
    scheduler.add_job(
        enqueue_due_syncs,
        trigger=IntervalTrigger(seconds=settings.due_check_interval_seconds),
        args=[engine],
        id="enqueue_due_syncs",
        name="Queue Due Batch Syncs",
        replace_existing=True,
    )

    # Progress leak sweep
    scheduler.add_job(
        sweep_stale_progress,
        trigger=IntervalTrigger(minutes=settings.progress_sweep_interval_minutes),
        args=[engine],
        id="sweep_stale_progress",
        name="Sweep Stale Progress",
        replace_existing=True,
    )

    logger.info("Scheduler initialized with batch sync maintenance jobs")
    return scheduler


def get_scheduler() -> AsyncIOScheduler | None:
    """Get the scheduler instance."""
    return scheduler
