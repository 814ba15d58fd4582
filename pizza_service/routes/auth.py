"""
Authentication endpoints: register, login, logout and account updates.
"""

import logging

from fastapi import APIRouter, Depends, Request

from pizza_service.context import AppContext
from pizza_service.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from pizza_service.routes.dependencies import get_context, require_user
from pizza_service.schemas import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    Role,
    RoleAssignment,
    UpdateUserRequest,
    User,
    UserCreate,
    is_role,
)
from pizza_service.services.auth import read_auth_token
from pizza_service.services.metrics import AuthMetric

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

ENDPOINTS = [
    {
        "method": "POST",
        "path": "/api/auth",
        "description": "Register a new user",
        "example": "curl -X POST localhost:3000/api/auth -d '{\"name\":\"pizza diner\", \"email\":\"d@jwt.com\", \"password\":\"diner\"}' -H 'Content-Type: application/json'",
        "response": {"user": {"id": 2, "name": "pizza diner", "email": "d@jwt.com", "roles": [{"role": "diner"}]}, "token": "tttttt"},
    },
    {
        "method": "PUT",
        "path": "/api/auth",
        "description": "Login existing user",
        "example": "curl -X PUT localhost:3000/api/auth -d '{\"email\":\"a@jwt.com\", \"password\":\"admin\"}' -H 'Content-Type: application/json'",
        "response": {"user": {"id": 1, "name": "常用名字", "email": "a@jwt.com", "roles": [{"role": "admin"}]}, "token": "tttttt"},
    },
    {
        "method": "PUT",
        "path": "/api/auth/:userId",
        "requiresAuth": True,
        "description": "Update user",
        "example": "curl -X PUT localhost:3000/api/auth/1 -d '{\"email\":\"a@jwt.com\", \"password\":\"admin\"}' -H 'Content-Type: application/json' -H 'Authorization: Bearer tttttt'",
        "response": {"id": 1, "name": "常用名字", "email": "a@jwt.com", "roles": [{"role": "admin"}]},
    },
    {
        "method": "DELETE",
        "path": "/api/auth",
        "requiresAuth": True,
        "description": "Logout a user",
        "example": "curl -X DELETE localhost:3000/api/auth -H 'Authorization: Bearer tttttt'",
        "response": {"message": "logout successful"},
    },
]


@router.post("", response_model=AuthResponse, response_model_exclude_none=True)
async def register(
    body: RegisterRequest,
    context: AppContext = Depends(get_context),
) -> AuthResponse:
    if not body.name or not body.email or not body.password:
        raise BadRequestError("name, email, and password are required")

    user = await context.dao.add_user(
        UserCreate(
            name=body.name,
            email=body.email,
            password=body.password,
            roles=[RoleAssignment(role=Role.DINER)],
        )
    )
    token = await context.auth.record_login(user)
    context.metrics.auth.inc(AuthMetric.ACTIVE_USERS)
    logger.info(f"Registered user #{user.id}")
    return AuthResponse(user=user, token=token)


@router.put("", response_model=AuthResponse, response_model_exclude_none=True)
async def login(
    body: LoginRequest,
    context: AppContext = Depends(get_context),
) -> AuthResponse:
    context.metrics.auth.inc(AuthMetric.AUTH_ATTEMPTS)
    try:
        user = await context.dao.get_user(body.email, body.password)
    except NotFoundError:
        context.metrics.auth.inc(AuthMetric.AUTH_ATTEMPTS_FAIL)
        raise

    token = await context.auth.record_login(user)
    context.metrics.auth.inc(AuthMetric.AUTH_ATTEMPTS_SUCCESS)
    context.metrics.auth.inc(AuthMetric.ACTIVE_USERS)
    return AuthResponse(user=user, token=token)


@router.delete("", response_model=MessageResponse)
async def logout(
    request: Request,
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
) -> MessageResponse:
    token = read_auth_token(request.headers.get("Authorization"))
    await context.auth.record_logout(token)
    context.metrics.auth.dec(AuthMetric.ACTIVE_USERS)
    return MessageResponse(message="logout successful")


@router.put("/{user_id}", response_model=User, response_model_exclude_none=True)
async def update_user(
    user_id: int,
    body: UpdateUserRequest,
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
) -> User:
    if user.id != user_id and not is_role(user.roles, Role.ADMIN):
        raise ForbiddenError("unauthorized")
    return await context.dao.update_user(user_id, email=body.email, password=body.password)
