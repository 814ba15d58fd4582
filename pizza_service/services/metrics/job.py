"""
Periodic metrics push, run as an asyncio task for the lifetime of the app.
"""

import asyncio
import logging
from typing import Optional

from pizza_service.services.metrics.collector import MetricsCollector
from pizza_service.services.metrics.distributor import MetricsDistributor

logger = logging.getLogger(__name__)


class MetricsJob:
    def __init__(
        self,
        collector: MetricsCollector,
        distributor: MetricsDistributor,
        interval: float = 5.0,
    ):
        self.collector = collector
        self.distributor = distributor
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> bool:
        return await self.distributor.distribute(self.collector.collect())

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Metrics job iteration failed: {e}")

    def start(self) -> None:
        """Start pushing; restarting replaces the running loop."""
        if self.running:
            self._task.cancel()
        self._task = asyncio.create_task(self._loop())
        logger.info(f"📈 Metrics job started (every {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Metrics job stopped")
