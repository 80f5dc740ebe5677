import asyncio
from typing import Optional
from .dispatcher import Dispatcher
from .models import Task
from .output import output


class LivenessMonitor:
    """Periodically turns pool prompts into tasks while some worker is polling.

    Runs as its own asyncio task, independent of any request.
    """

    def __init__(self, dispatcher: Dispatcher, interval: Optional[float] = None):
        self.dispatcher = dispatcher
        self.interval = interval if interval is not None else dispatcher.settings.monitor_interval
        self._task: Optional[asyncio.Task] = None
        self._pool_exhausted_logged = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> Optional[Task]:
        """Run one liveness check; returns the task created, if any"""
        settings = self.dispatcher.settings
        store = self.dispatcher.store

        alive = store.alive_workers(settings.liveness_window)
        if not alive:
            output.debug("No live workers, skipping task production")
            return None

        task = store.enqueue_from_pool(settings.queue_capacity)
        if task is None:
            if store.prompts_remaining == 0:
                if not self._pool_exhausted_logged:
                    output.info("Prompt pool exhausted, task production stopped")
                    self._pool_exhausted_logged = True
            else:
                output.debug(f"Queue at capacity ({settings.queue_capacity}), skipping task production")
            return None

        output.info(f"Produced task {task.id} for {len(alive)} live worker(s)")
        self.dispatcher.notify_task_available()
        return task

    async def run(self):
        """Monitor loop - ticks until cancelled"""
        output.info(f"Liveness monitor started (every {self.interval}s)")
        try:
            while True:
                try:
                    self.tick()
                except Exception as e:
                    output.error(f"Liveness monitor tick failed: {e}", exc_info=True)
                await self.dispatcher.clock.sleep(self.interval)
        finally:
            output.info("Liveness monitor stopped")

    def start(self):
        """Start the monitor on the running event loop"""
        if not self.running:
            self._task = asyncio.create_task(self.run(), name="liveness-monitor")

    async def stop(self):
        """Cancel the monitor and wait for it to finish"""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
