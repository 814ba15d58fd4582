"""
Franchise and store endpoints.

Admins manage everything; franchise admins may manage the stores of
their own franchises.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from pizza_service.context import AppContext
from pizza_service.core.exceptions import ForbiddenError
from pizza_service.routes.dependencies import get_auth_user, get_context, require_user
from pizza_service.schemas import (
    Franchise,
    FranchiseCreate,
    MessageResponse,
    Role,
    Store,
    StoreCreate,
    User,
    is_role,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/franchise", tags=["Franchise"])

ENDPOINTS = [
    {
        "method": "GET",
        "path": "/api/franchise",
        "description": "List all the franchises",
        "example": "curl localhost:3000/api/franchise",
        "response": [{"id": 1, "name": "pizzaPocket", "stores": [{"id": 1, "name": "SLC"}]}],
    },
    {
        "method": "GET",
        "path": "/api/franchise/:userId",
        "requiresAuth": True,
        "description": "List a user's franchises",
        "example": "curl localhost:3000/api/franchise/4  -H 'Authorization: Bearer tttttt'",
        "response": [{"id": 2, "name": "pizzaPocket", "admins": [{"id": 4, "name": "pizza franchisee", "email": "f@jwt.com"}], "stores": [{"id": 4, "name": "SLC", "totalRevenue": 0}]}],
    },
    {
        "method": "POST",
        "path": "/api/franchise",
        "requiresAuth": True,
        "description": "Create a new franchise",
        "example": "curl -X POST localhost:3000/api/franchise -H 'Content-Type: application/json' -H 'Authorization: Bearer tttttt' -d '{\"name\": \"pizzaPocket\", \"admins\": [{\"email\": \"f@jwt.com\"}]}'",
        "response": {"name": "pizzaPocket", "admins": [{"email": "f@jwt.com", "id": 4, "name": "pizza franchisee"}], "id": 1},
    },
    {
        "method": "DELETE",
        "path": "/api/franchise/:franchiseId",
        "requiresAuth": True,
        "description": "Delete a franchise",
        "example": "curl -X DELETE localhost:3000/api/franchise/1 -H 'Authorization: Bearer tttttt'",
        "response": {"message": "franchise deleted"},
    },
    {
        "method": "POST",
        "path": "/api/franchise/:franchiseId/store",
        "requiresAuth": True,
        "description": "Create a new franchise store",
        "example": "curl -X POST localhost:3000/api/franchise/1/store -H 'Content-Type: application/json' -d '{\"franchiseId\": 1, \"name\":\"SLC\"}' -H 'Authorization: Bearer tttttt'",
        "response": {"id": 1, "name": "SLC", "franchiseId": 1},
    },
    {
        "method": "DELETE",
        "path": "/api/franchise/:franchiseId/store/:storeId",
        "requiresAuth": True,
        "description": "Delete a store",
        "example": "curl -X DELETE localhost:3000/api/franchise/1/store/1  -H 'Authorization: Bearer tttttt'",
        "response": {"message": "store deleted"},
    },
]


async def _can_manage_stores(context: AppContext, user: User, franchise_id: int) -> bool:
    """Admins, or admins of this franchise. Unknown franchises are never manageable."""
    franchise = await context.dao.get_franchise(franchise_id)
    if franchise is None:
        return False
    if is_role(user.roles, Role.ADMIN):
        return True
    return any(admin.id == user.id for admin in franchise.admins or [])


@router.get("", response_model=list[Franchise], response_model_exclude_none=True)
async def get_franchises(
    user: Optional[User] = Depends(get_auth_user),
    context: AppContext = Depends(get_context),
) -> list[Franchise]:
    return await context.dao.get_franchises(user)


@router.get("/{user_id}", response_model=list[Franchise], response_model_exclude_none=True)
async def get_user_franchises(
    user_id: int,
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
) -> list[Franchise]:
    if user.id != user_id and not is_role(user.roles, Role.ADMIN):
        return []
    return await context.dao.get_user_franchises(user_id)


@router.post("", response_model=Franchise, response_model_exclude_none=True)
async def create_franchise(
    franchise: FranchiseCreate,
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
) -> Franchise:
    if not is_role(user.roles, Role.ADMIN):
        raise ForbiddenError("unable to create a franchise")
    created = await context.dao.create_franchise(franchise)
    logger.info(f"Franchise #{created.id} created by user #{user.id}")
    return created


@router.delete("/{franchise_id}", response_model=MessageResponse)
async def delete_franchise(
    franchise_id: int,
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
) -> MessageResponse:
    if not is_role(user.roles, Role.ADMIN):
        raise ForbiddenError("unable to delete a franchise")
    await context.dao.delete_franchise(franchise_id)
    return MessageResponse(message="franchise deleted")


@router.post("/{franchise_id}/store", response_model=Store, response_model_exclude_none=True)
async def create_store(
    franchise_id: int,
    store: StoreCreate,
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
) -> Store:
    if not await _can_manage_stores(context, user, franchise_id):
        raise ForbiddenError("unable to create a store")
    return await context.dao.create_store(franchise_id, store)


@router.delete("/{franchise_id}/store/{store_id}", response_model=MessageResponse)
async def delete_store(
    franchise_id: int,
    store_id: int,
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
) -> MessageResponse:
    if not await _can_manage_stores(context, user, franchise_id):
        raise ForbiddenError("unable to delete a store")
    await context.dao.delete_store(franchise_id, store_id)
    return MessageResponse(message="store deleted")
