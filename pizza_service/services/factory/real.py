"""
Pizza Factory HTTP Client

Production implementation that calls the pizza factory over HTTPS.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - FACTORY_URL points at the factory (default: the course factory)
    - FACTORY_API_KEY authenticates this vendor
"""

import logging
from datetime import datetime
from typing import Optional

import httpx

from pizza_service.core.config import Settings
from pizza_service.schemas import DinerOrder, User
from pizza_service.services.factory.base import BaseFactoryService, FactoryResult

logger = logging.getLogger(__name__)


class RealFactoryService(BaseFactoryService):
    """
    Factory client backed by httpx.

    Args:
        settings: Application settings (factory URL, key and timeout)
        client: Optional pre-built client, mainly for tests

    Raises:
        ValueError: If FACTORY_API_KEY is not configured
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        if not settings.factory_api_key:
            raise ValueError(
                "FACTORY_API_KEY is required outside development mode. "
                "Set it in your .env file or environment variables."
            )

        self.base_url = settings.factory_url.rstrip("/")
        self._api_key = settings.factory_api_key
        self._timeout = settings.factory_timeout
        self._client = client

        logger.info(f"RealFactoryService initialized ({self.base_url})")

    @property
    def provider_name(self) -> str:
        return "factory"

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    async def _post(self, path: str, body: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(f"{self.base_url}{path}", json=body, headers=self._headers())
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(f"{self.base_url}{path}", json=body, headers=self._headers())

    async def create_order(self, diner: User, order: DinerOrder) -> FactoryResult:
        start_time = datetime.now()
        body = {
            "diner": {"id": diner.id, "name": diner.name, "email": diner.email},
            "order": order.to_json(),
        }

        try:
            response = await self._post("/api/order", body)
        except httpx.HTTPError as e:
            logger.error(f"Factory: Request failed - {e}")
            return FactoryResult(
                success=False,
                error_message=str(e),
                response_time_ms=(datetime.now() - start_time).total_seconds() * 1000,
            )

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
        try:
            payload = response.json()
        except ValueError:
            payload = {"message": response.text}
        if not isinstance(payload, dict):
            payload = {"response": payload}

        if response.is_success:
            return FactoryResult(
                success=True,
                jwt=payload.get("jwt"),
                report_url=payload.get("reportUrl"),
                response=payload,
                response_time_ms=elapsed_ms,
            )

        logger.warning(f"Factory: Order #{order.id} rejected with HTTP {response.status_code}")
        return FactoryResult(
            success=False,
            report_url=payload.get("reportUrl"),
            response=payload,
            error_message=payload.get("message", response.reason_phrase),
            response_time_ms=elapsed_ms,
        )
