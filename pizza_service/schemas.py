"""
Pydantic Schemas for Entities, Requests and Responses

These models are both the DAO's typed results and the API's JSON shapes.
Field names are snake_case in Python and camelCase on the wire; fields
that are absent (None) are omitted from responses.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, Enum):
    DINER = "diner"
    FRANCHISEE = "franchisee"
    ADMIN = "admin"


# =============================================================================
# BASE
# =============================================================================

class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_json(self) -> dict:
        """Wire representation: camelCase keys, absent fields dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# USERS
# =============================================================================

class RoleAssignment(CamelModel):
    """
    A role held by a user.

    ``object_id`` is the franchise id for franchisees and absent otherwise.
    ``object`` is only used on input, naming the franchise of a new
    franchisee.
    """
    role: Role
    object_id: Optional[int] = None
    object: Optional[str] = None


class User(CamelModel):
    """Public user representation. Never carries a password."""
    id: Optional[int] = None
    name: Optional[str] = None
    email: Optional[str] = None
    roles: Optional[List[RoleAssignment]] = None


def is_role(roles: Optional[List[RoleAssignment]], role: Role) -> bool:
    """Whether a role list contains ``role``."""
    return any(assignment.role == role for assignment in roles or [])


class UserCreate(CamelModel):
    """Input for creating a user."""
    name: str
    email: str
    password: str
    roles: List[RoleAssignment] = Field(default_factory=lambda: [RoleAssignment(role=Role.DINER)])


class RegisterRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UpdateUserRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AuthResponse(CamelModel):
    user: User
    token: str


# =============================================================================
# MENU
# =============================================================================

class MenuItemCreate(CamelModel):
    title: str
    description: str = ""
    image: str = ""
    price: float = Field(..., ge=0)


class MenuItem(MenuItemCreate):
    id: int


# =============================================================================
# FRANCHISES & STORES
# =============================================================================

class StoreCreate(CamelModel):
    name: str


class Store(CamelModel):
    """A store. ``total_revenue`` is only present on detailed reads."""
    id: int
    name: str
    franchise_id: Optional[int] = None
    total_revenue: Optional[float] = None


class FranchiseAdmin(CamelModel):
    email: str


class FranchiseCreate(CamelModel):
    name: str
    admins: List[FranchiseAdmin] = Field(default_factory=list)


class Franchise(CamelModel):
    """
    A franchise. ``admins`` is only present on detailed reads and on
    creation; ``stores`` is absent on creation.
    """
    id: int
    name: str
    admins: Optional[List[User]] = None
    stores: Optional[List[Store]] = None


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemCreate(CamelModel):
    """
    An order line as sent by a client.

    Only ``menu_id`` is honoured; description and price are always taken
    from the menu.
    """
    menu_id: int
    description: Optional[str] = None
    price: Optional[float] = None


class OrderCreate(CamelModel):
    franchise_id: int
    store_id: int
    items: List[OrderItemCreate] = Field(default_factory=list)


class OrderItem(CamelModel):
    id: int
    menu_id: int
    description: str
    price: float
    order_id: Optional[int] = None


class DinerOrder(CamelModel):
    id: int
    franchise_id: int
    store_id: int
    date: datetime
    items: List[OrderItem] = Field(default_factory=list)
    diner_id: Optional[int] = None


class UserOrders(CamelModel):
    """One page of a diner's order history."""
    diner_id: int
    orders: List[DinerOrder]
    page: int


# =============================================================================
# GENERIC RESPONSES
# =============================================================================

class MessageResponse(BaseModel):
    message: str


class ChaosResponse(BaseModel):
    chaos: bool
