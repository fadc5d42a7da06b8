import asyncio
from datetime import datetime
from typing import Optional

from core.observability import get_logger

from .registry import TaskRegistry

logger = get_logger(__name__)


class RetentionSweeper:
    """
    Periodically drops finished tasks older than the retention window.

    Non-terminal tasks are never touched, whatever their age.
    """

    def __init__(self, registry: TaskRegistry, interval_seconds: float, retention_seconds: float):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.registry = registry
        self.interval = interval_seconds
        self.retention = max(0.0, retention_seconds)
        self._job: Optional[asyncio.Task] = None

    def sweep_once(self, now: Optional[datetime] = None) -> int:
        removed = self.registry.prune_finished(self.retention, now=now)
        if removed:
            logger.info("tasks_swept", removed=removed, remaining=self.registry.get_stats()["total"])
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.sweep_once()
            except Exception:
                logger.exception("sweep_failed")

    def start(self) -> None:
        if self._job is None or self._job.done():
            self._job = asyncio.get_running_loop().create_task(self._loop(), name="retention-sweeper")

    @property
    def running(self) -> bool:
        return self._job is not None and not self._job.done()

    async def stop(self) -> None:
        if self._job is None:
            return
        self._job.cancel()
        try:
            await self._job
        except asyncio.CancelledError:
            pass
        self._job = None
