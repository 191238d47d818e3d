"""Time source used by the engine for timestamps, elapsed time and pacing."""

import asyncio
import time
from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Wall clock, monotonic clock and sleep primitive."""

    def now(self) -> datetime:
        """Current UTC wall-clock time."""
        ...

    def monotonic(self) -> float:
        """Monotonic seconds for measuring elapsed time."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the calling coroutine."""
        ...


class SystemClock:
    """Clock backed by the real time and asyncio.sleep."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)


def elapsed_ms(clock: Clock, since: float) -> float:
    """Milliseconds elapsed on the clock's monotonic scale since `since`."""
    return (clock.monotonic() - since) * 1000
