"""
Application context: the collaborators a running app is built from.

One context per app instance. Tests build their own with a memory DAO and
a mock factory; production builds one from settings.
"""

from dataclasses import dataclass, field
from typing import Optional

from pizza_service.core.config import Settings
from pizza_service.services.auth import AuthService
from pizza_service.services.chaos import ChaosManager
from pizza_service.services.dao import BaseDAO, create_dao
from pizza_service.services.factory import BaseFactoryService, create_factory_service
from pizza_service.services.metrics import Metrics


@dataclass
class AppContext:
    settings: Settings
    dao: BaseDAO
    auth: AuthService
    factory: BaseFactoryService
    metrics: Metrics = field(default_factory=Metrics)
    chaos: ChaosManager = field(default_factory=ChaosManager)


def create_context(
    settings: Settings,
    dao: Optional[BaseDAO] = None,
    factory: Optional[BaseFactoryService] = None,
) -> AppContext:
    """Build a context, creating any collaborator that was not supplied."""
    dao = dao or create_dao(settings)
    return AppContext(
        settings=settings,
        dao=dao,
        auth=AuthService(dao, settings),
        factory=factory or create_factory_service(settings),
    )
