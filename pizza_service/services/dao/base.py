"""
Data Access Object Abstract Base Class

Defines the persistence contract shared by every engine. Both MemoryDAO
and SqlDAO implement these methods with identical observable behaviour,
so routes and tests can swap one for the other freely.

Design Pattern: Strategy Pattern
    - The relational engine is authoritative in production
    - The in-memory engine gives fast, dependency-free tests
    - Route handlers only ever see BaseDAO

Shared rules:
    - ids are assigned by the engine, increase per entity type and are
      never reused until clear()
    - passwords are stored as bcrypt hashes and never returned
    - a role's object_id of 0 is returned as absent
    - store revenue is computed on every read
    - every list comes back in ascending id order
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from pizza_service.core.exceptions import BadRequestError
from pizza_service.schemas import (
    DinerOrder,
    Franchise,
    FranchiseCreate,
    MenuItem,
    MenuItemCreate,
    OrderCreate,
    OrderItem,
    Role,
    RoleAssignment,
    Store,
    StoreCreate,
    User,
    UserCreate,
    UserOrders,
)

logger = logging.getLogger(__name__)

# Bootstrap account created on an empty store and after every clear()
DEFAULT_ADMIN = UserCreate(
    name="常用名字",
    email="a@jwt.com",
    password="admin",
    roles=[RoleAssignment(role=Role.ADMIN)],
)


def get_offset(page: int, per_page: int) -> int:
    """Offset of a 1-indexed page."""
    if page < 1:
        raise BadRequestError("page must be at least 1")
    return (page - 1) * per_page


def utc_now() -> datetime:
    """Order timestamp: naive UTC, whole seconds."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def normalize_role(role: Role, object_id: Optional[int]) -> RoleAssignment:
    return RoleAssignment(role=role, object_id=object_id or None)


def order_item_from(record) -> OrderItem:
    return OrderItem(
        id=record.id,
        menu_id=record.menu_id,
        description=record.description,
        price=record.price,
    )


class BaseDAO(ABC):
    """
    Abstract base class for persistence engines.

    Subclasses implement ``_initialize`` (schema creation and admin seed)
    and every operation below. Each operation starts by awaiting
    ``ready()``, which runs ``_initialize`` exactly once no matter how many
    callers race for it.

    Example:
        >>> dao = create_dao(settings)
        >>> user = await dao.get_user("a@jwt.com", "admin")
        >>> print(user.roles[0].role)
        Role.ADMIN
    """

    def __init__(self, list_per_page: int = 10, bcrypt_rounds: int = 10):
        self.list_per_page = list_per_page
        self.bcrypt_rounds = bcrypt_rounds
        self._initialized: Optional[asyncio.Task] = None

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the persistence engine.

        Returns:
            str: Engine name ("memory" or "sql")
        """
        pass

    async def ready(self) -> None:
        """Wait until the one-time initialization has completed."""
        if self._initialized is None:
            self._initialized = asyncio.ensure_future(self._initialize())
        try:
            await self._initialized
        except Exception:
            # let the next caller retry
            self._initialized = None
            raise

    @abstractmethod
    async def _initialize(self) -> None:
        """Prepare the backing store and seed the default admin if it is empty."""
        pass

    async def dispose(self) -> None:
        """Release engine resources."""

    # =========================================================================
    # MENU
    # =========================================================================

    @abstractmethod
    async def get_menu(self) -> list[MenuItem]:
        pass

    @abstractmethod
    async def add_menu_item(self, item: MenuItemCreate) -> MenuItem:
        pass

    # =========================================================================
    # USERS & SESSIONS
    # =========================================================================

    @abstractmethod
    async def add_user(self, user: UserCreate) -> User:
        """
        Create a user and its role assignments.

        A franchisee role names its franchise through ``object``.

        Raises:
            MissingReferenceError: a franchisee role names an unknown
                franchise; nothing is persisted
        """
        pass

    @abstractmethod
    async def get_user(self, email: Optional[str], password: Optional[str]) -> User:
        """
        Authenticate by email and password.

        Raises:
            NotFoundError: unknown email, or missing or wrong password
        """
        pass

    @abstractmethod
    async def update_user(
        self,
        user_id: int,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        """
        Change a user's email and/or password.

        Raises:
            BadRequestError: no user has this id
        """
        pass

    @abstractmethod
    async def login_user(self, user_id: int, token: str) -> None:
        pass

    @abstractmethod
    async def is_logged_in(self, token: str) -> bool:
        pass

    @abstractmethod
    async def logout_user(self, token: str) -> None:
        """
        Raises:
            UnauthorizedError: no session exists for the token
        """
        pass

    # =========================================================================
    # ORDERS
    # =========================================================================

    @abstractmethod
    async def get_orders(self, user: User, page: int = 1) -> UserOrders:
        pass

    @abstractmethod
    async def add_diner_order(self, user: User, order: OrderCreate) -> DinerOrder:
        """
        Persist an order, pricing every line from the menu.

        Raises:
            MissingReferenceError: a line references an unknown menu item;
                nothing is persisted
        """
        pass

    # =========================================================================
    # FRANCHISES & STORES
    # =========================================================================

    @abstractmethod
    async def create_franchise(self, franchise: FranchiseCreate) -> Franchise:
        """
        Raises:
            NotFoundError: an admin email matches no user; nothing is persisted
        """
        pass

    @abstractmethod
    async def delete_franchise(self, franchise_id: int) -> None:
        pass

    @abstractmethod
    async def get_franchises(self, auth_user: Optional[User] = None) -> list[Franchise]:
        pass

    @abstractmethod
    async def get_user_franchises(self, user_id: int) -> list[Franchise]:
        pass

    @abstractmethod
    async def get_franchise(self, franchise_id: int) -> Optional[Franchise]:
        pass

    @abstractmethod
    async def create_store(self, franchise_id: int, store: StoreCreate) -> Store:
        pass

    @abstractmethod
    async def delete_store(self, franchise_id: int, store_id: int) -> None:
        pass

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    @abstractmethod
    async def clear(self) -> None:
        """Wipe every collection and reseed the default admin."""
        pass
