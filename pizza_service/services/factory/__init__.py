"""
Pizza Factory Service Factory

Usage:
    from pizza_service.services.factory import create_factory_service

    factory = create_factory_service(settings)
    result = await factory.create_order(diner, order)

Environment Switching:
    - ENV_MODE=development → MockFactoryService (no network calls)
    - ENV_MODE=staging/production → RealFactoryService
"""

import logging

from pizza_service.core.config import Settings
from pizza_service.services.factory.base import BaseFactoryService, FactoryResult
from pizza_service.services.factory.mock import MockFactoryService
from pizza_service.services.factory.real import RealFactoryService

logger = logging.getLogger(__name__)


def create_factory_service(settings: Settings) -> BaseFactoryService:
    """
    Build the factory client for the configured environment.

    Raises:
        ValueError: If a real client is required but FACTORY_API_KEY is missing
    """
    if settings.use_real_services:
        logger.info("🍕 Factory: Using RealFactoryService")
        return RealFactoryService(settings)

    logger.info("🍕 Factory: Using MockFactoryService")
    return MockFactoryService()


__all__ = [
    "create_factory_service",
    "BaseFactoryService",
    "FactoryResult",
    "MockFactoryService",
    "RealFactoryService",
]
