"""
Authentication Service

Ties signed tokens to server-side sessions. A token is only honoured while
the DAO holds a session for its signature, so logout revokes it even
though the JWT itself would still verify.
"""

import logging
from typing import Optional

from pizza_service.core.config import Settings
from pizza_service.core.security import sign_token, verify_token
from pizza_service.schemas import User, is_role
from pizza_service.services.dao.base import BaseDAO

logger = logging.getLogger(__name__)


def read_auth_token(header: Optional[str]) -> Optional[str]:
    """Token part of an ``Authorization: <scheme> <token>`` header."""
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) < 2 or not parts[1]:
        return None
    return parts[1]


class AuthService:
    """
    Issues, validates and revokes bearer tokens.

    Example:
        >>> auth = AuthService(dao, settings)
        >>> token = await auth.record_login(user)
        >>> await auth.resolve_user(token)
        User(id=1, ...)
    """

    def __init__(self, dao: BaseDAO, settings: Settings):
        self.dao = dao
        self.secret = settings.jwt_secret

    async def session_valid(self, token: str) -> bool:
        return await self.dao.is_logged_in(token)

    async def record_login(self, user: User) -> str:
        """Sign a token for ``user`` and open a session for it."""
        token = sign_token(user, self.secret)
        await self.dao.login_user(user.id, token)
        logger.debug(f"Session opened for user #{user.id}")
        return token

    async def record_logout(self, token: str) -> None:
        await self.dao.logout_user(token)

    async def resolve_user(self, token: Optional[str]) -> Optional[User]:
        """
        The user a token belongs to, or None.

        The session is checked first; the signature and claims second.
        """
        if not token:
            return None
        if not await self.session_valid(token):
            return None
        return verify_token(token, self.secret)


__all__ = ["AuthService", "read_auth_token", "is_role"]
