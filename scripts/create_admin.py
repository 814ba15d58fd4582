"""
Create an admin user through the configured persistence engine.

Run from project root:
    python scripts/create_admin.py "Pizza Admin" admin@jwt.com s3cret
"""

import argparse
import asyncio
import logging

from pizza_service.core.config import get_settings, setup_logging
from pizza_service.schemas import Role, RoleAssignment, UserCreate
from pizza_service.services.dao import create_dao

logger = logging.getLogger("pizza_service.scripts.create_admin")


async def create_admin(name: str, email: str, password: str) -> None:
    dao = create_dao(get_settings())
    try:
        user = await dao.add_user(
            UserCreate(name=name, email=email, password=password, roles=[RoleAssignment(role=Role.ADMIN)])
        )
        logger.info(f"✅ Created admin #{user.id} ({user.email})")
    finally:
        await dao.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("name")
    parser.add_argument("email")
    parser.add_argument("password")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(create_admin(args.name, args.email, args.password))
