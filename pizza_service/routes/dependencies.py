"""
Shared FastAPI dependencies: the app context, the authenticated user and
the chaos check.
"""

import logging
import random
from typing import Optional

from fastapi import Depends, Request

from pizza_service.context import AppContext
from pizza_service.core.exceptions import StatusCodeError, UnauthorizedError
from pizza_service.schemas import User
from pizza_service.services.auth import read_auth_token

logger = logging.getLogger(__name__)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


async def get_auth_user(
    request: Request,
    context: AppContext = Depends(get_context),
) -> Optional[User]:
    """The caller, if the request carries a token with a live session."""
    token = read_auth_token(request.headers.get("Authorization"))
    return await context.auth.resolve_user(token)


async def require_user(user: Optional[User] = Depends(get_auth_user)) -> User:
    if user is None:
        raise UnauthorizedError("unauthorized")
    return user


async def check_chaos(request: Request, context: AppContext = Depends(get_context)) -> None:
    """Fail at random while chaos is on for this path and method."""
    path = request.url.path.rstrip("/") or "/"
    if not context.chaos.has_chaos(path, request.method):
        return
    if random.random() < context.settings.chaos_failure_rate:
        logger.warning(f"Chaos monkey struck {request.method} {path}")
        raise StatusCodeError("Chaos monkey", 500)
