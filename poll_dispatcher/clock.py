import asyncio
import time
from datetime import datetime, timezone


class Clock:
    """Time source for timestamps, deadlines and cancellable delays.

    now() is wall-clock UTC for record timestamps and liveness; monotonic()
    is for deadlines so a system clock change cannot stretch a poll.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        """Cancellable delay; cancelling the caller's task ends it immediately"""
        await asyncio.sleep(max(0.0, seconds))

    async def wait(self, event: asyncio.Event, seconds: float) -> bool:
        """Wait up to seconds for event; True if it was set in time"""
        if event.is_set():
            return True
        try:
            await asyncio.wait_for(event.wait(), timeout=max(0.0, seconds))
        except asyncio.TimeoutError:
            return False
        return True


clock = Clock()
