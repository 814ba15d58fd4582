"""
Mock Pizza Factory Implementation

Simulates the pizza factory without network calls. Used in development
mode (ENV_MODE=development) and by the test suite.

Behavior:
    - Optional simulated latency
    - Fails a configurable share of orders
    - Returns an unsigned fake receipt and a local report URL
"""

import asyncio
import logging
import random
import uuid
from datetime import datetime

from pizza_service.schemas import DinerOrder, User
from pizza_service.services.factory.base import BaseFactoryService, FactoryResult

logger = logging.getLogger(__name__)


class MockFactoryService(BaseFactoryService):
    """
    Mock implementation of the factory client.

    Attributes:
        failure_rate: Probability of a simulated factory failure (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds

    Example:
        >>> factory = MockFactoryService(failure_rate=0.0)
        >>> result = await factory.create_order(diner, order)
        >>> result.success
        True
    """

    REPORT_URL = "http://localhost:3000/api/report"

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency

        logger.info(
            f"MockFactoryService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def create_order(self, diner: User, order: DinerOrder) -> FactoryResult:
        start_time = datetime.now()

        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

        report_url = f"{self.REPORT_URL}?id={uuid.uuid4().hex[:12]}"
        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000

        if self._should_fail():
            logger.debug(f"Mock: Factory rejected order #{order.id}")
            return FactoryResult(
                success=False,
                report_url=report_url,
                response={"message": "Mock factory failure", "reportUrl": report_url},
                error_message="Mock factory failure",
                response_time_ms=elapsed_ms,
            )

        receipt = f"mock.{uuid.uuid4().hex}.{order.id}"
        logger.info(f"Mock: Factory baked {len(order.items)} pizza(s) for order #{order.id}")
        return FactoryResult(
            success=True,
            jwt=receipt,
            report_url=report_url,
            response={"jwt": receipt, "reportUrl": report_url},
            response_time_ms=elapsed_ms,
        )
