"""Priority queue of pending runs and the background dispatcher draining it."""

import asyncio
import contextlib
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from batchsync.core.clock import Clock

logger = logging.getLogger(__name__)


@dataclass
class QueueEntry:
    """A pending run request. Ordered by priority desc, then enqueue time."""

    config_id: str
    priority: int
    enqueued_at: datetime
    sequence: int

    @property
    def sort_key(self) -> tuple[int, datetime, int]:
        return (-self.priority, self.enqueued_at, self.sequence)


class SyncQueue:
    """Ordered work queue holding at most one entry per configuration."""

    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self._entries: list[QueueEntry] = []
        self._sequence = itertools.count()

    def push(self, config_id: str, priority: int) -> QueueEntry:
        """Insert an entry, or re-prioritize and re-stamp an existing one."""
        entry = self._find(config_id)
        if entry is not None:
            entry.priority = priority
            entry.enqueued_at = self.clock.now()
            entry.sequence = next(self._sequence)
            logger.info(f"Re-prioritized queued configuration {config_id} to {priority}")
        else:
            entry = QueueEntry(
                config_id=config_id,
                priority=priority,
                enqueued_at=self.clock.now(),
                sequence=next(self._sequence),
            )
            self._entries.append(entry)
            logger.info(f"Queued configuration {config_id} with priority {priority}")

        self._entries.sort(key=lambda e: e.sort_key)
        return entry

    def peek(self) -> QueueEntry | None:
        return self._entries[0] if self._entries else None

    def pop(self) -> QueueEntry | None:
        return self._entries.pop(0) if self._entries else None

    def remove(self, config_id: str) -> bool:
        entry = self._find(config_id)
        if entry is None:
            return False
        self._entries.remove(entry)
        return True

    def entries(self) -> list[QueueEntry]:
        """Entries in dispatch order."""
        return [QueueEntry(e.config_id, e.priority, e.enqueued_at, e.sequence) for e in self._entries]

    def _find(self, config_id: str) -> QueueEntry | None:
        for entry in self._entries:
            if entry.config_id == config_id:
                return entry
        return None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, config_id: object) -> bool:
        return any(e.config_id == config_id for e in self._entries)


class DispatchDecision(str, Enum):
    """What the dispatcher should do with the head entry."""

    READY = "ready"
    MISSING = "missing"
    DISABLED = "disabled"
    BUSY = "busy"


class QueueDispatcher:
    """Single background loop that drains a SyncQueue into executions.

    Runs only while the queue is non-empty. `trigger()` is a no-op while a loop
    is already active. Busy configurations are dropped unless `requeue_busy`
    is set, in which case they are re-stamped and retried later.
    """

    def __init__(
        self,
        queue: SyncQueue,
        check: Callable[[str], DispatchDecision],
        execute: Callable[[str], Awaitable[object]],
        clock: Clock,
        delay_seconds: float = 1.0,
        requeue_busy: bool = False,
    ) -> None:
        self.queue = queue
        self._check = check
        self._execute = execute
        self.clock = clock
        self.delay_seconds = delay_seconds
        self.requeue_busy = requeue_busy
        self.is_processing = False
        self.dispatched: list[str] = []
        self._task: asyncio.Task | None = None

    def trigger(self) -> asyncio.Task | None:
        """Start the loop if it is idle and there is work."""
        if self.is_processing or not self.queue:
            return None
        self.is_processing = True
        self._task = asyncio.create_task(self._drain())
        return self._task

    async def join(self) -> None:
        """Wait for the current loop, if any, to drain the queue."""
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self.is_processing = False

    async def _drain(self) -> None:
        logger.info(f"Queue dispatcher started with {len(self.queue)} entries")
        try:
            while self.queue:
                entry = self.queue.pop()
                await self._dispatch_one(entry)
                if self.queue:
                    await self.clock.sleep(self.delay_seconds)
        finally:
            self.is_processing = False
            logger.info("Queue dispatcher idle")

    async def _dispatch_one(self, entry: QueueEntry) -> None:
        config_id = entry.config_id
        decision = self._check(config_id)

        if decision in (DispatchDecision.MISSING, DispatchDecision.DISABLED):
            logger.info(f"Dropping queued configuration {config_id}: {decision.value}")
            return

        if decision == DispatchDecision.BUSY:
            if self.requeue_busy:
                logger.info(f"Configuration {config_id} is running, moving it to the back of its priority")
                self.queue.push(config_id, entry.priority)
            else:
                logger.warning(f"Configuration {config_id} is already running, dropping queued entry")
            return

        self.dispatched.append(config_id)
        try:
            await self._execute(config_id)
        except Exception as e:
            logger.error(f"Queued sync for configuration {config_id} failed: {e}", exc_info=True)
