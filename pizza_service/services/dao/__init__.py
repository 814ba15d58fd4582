"""
DAO Factory

Single entry point for obtaining a persistence engine.

Usage:
    from pizza_service.services.dao import create_dao

    dao = create_dao(settings)
    menu = await dao.get_menu()

Backend Switching:
    - DAO_BACKEND=sql → SqlDAO (default, relational database)
    - DAO_BACKEND=memory → MemoryDAO (process-local, lost on restart)
"""

import logging

from pizza_service.core.config import Settings
from pizza_service.services.dao.base import DEFAULT_ADMIN, BaseDAO
from pizza_service.services.dao.memory import MemoryDAO
from pizza_service.services.dao.sql import SqlDAO

logger = logging.getLogger(__name__)


def create_dao(settings: Settings) -> BaseDAO:
    """
    Build the persistence engine selected by the settings.

    Not cached: the application context owns the instance, and tests build
    as many isolated engines as they need.
    """
    if settings.use_memory_database:
        logger.info("DAO: Using MemoryDAO")
        return MemoryDAO(
            list_per_page=settings.list_per_page,
            bcrypt_rounds=settings.bcrypt_rounds,
        )

    url = settings.sqlalchemy_url
    logger.info(f"DAO: Using SqlDAO ({url.render_as_string(hide_password=True)})")
    return SqlDAO(
        url,
        connect_timeout=settings.db_connect_timeout,
        list_per_page=settings.list_per_page,
        bcrypt_rounds=settings.bcrypt_rounds,
    )


__all__ = [
    "create_dao",
    "BaseDAO",
    "MemoryDAO",
    "SqlDAO",
    "DEFAULT_ADMIN",
]
