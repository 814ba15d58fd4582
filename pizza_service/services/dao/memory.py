"""
In-Memory DAO Implementation

Keeps every collection in plain Python lists. Used by the test suite and by
local development when no database is configured. Behaviour matches
SqlDAO exactly, including id assignment and ordering.

Mutations take a single asyncio.Lock and validate every reference before
touching any list, so a failed operation never leaves partial state.
"""

import asyncio
import itertools
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pizza_service.core.exceptions import MissingReferenceError, NotFoundError, UnauthorizedError, BadRequestError
from pizza_service.core.security import get_token_signature, hash_password, verify_password
from pizza_service.schemas import (
    DinerOrder,
    Franchise,
    FranchiseCreate,
    MenuItem,
    MenuItemCreate,
    OrderCreate,
    Role,
    RoleAssignment,
    Store,
    StoreCreate,
    User,
    UserCreate,
    UserOrders,
    is_role,
)
from pizza_service.services.dao.base import (
    DEFAULT_ADMIN,
    BaseDAO,
    get_offset,
    normalize_role,
    order_item_from,
    utc_now,
)

logger = logging.getLogger(__name__)


# =============================================================================
# RECORDS
# =============================================================================

@dataclass
class _UserRecord:
    id: int
    name: str
    email: str
    password: str


@dataclass
class _RoleRecord:
    user_id: int
    role: Role
    object_id: int


@dataclass
class _FranchiseRecord:
    id: int
    name: str


@dataclass
class _StoreRecord:
    id: int
    franchise_id: int
    name: str


@dataclass
class _OrderRecord:
    id: int
    diner_id: int
    franchise_id: int
    store_id: int
    date: datetime


@dataclass
class _OrderItemRecord:
    id: int
    order_id: int
    menu_id: int
    description: str
    price: float


# =============================================================================
# DAO
# =============================================================================

class MemoryDAO(BaseDAO):
    """Process-local persistence engine."""

    def __init__(self, list_per_page: int = 10, bcrypt_rounds: int = 10):
        super().__init__(list_per_page=list_per_page, bcrypt_rounds=bcrypt_rounds)
        self._lock = asyncio.Lock()
        self._reset()

    @property
    def provider_name(self) -> str:
        return "memory"

    def _reset(self) -> None:
        self._users: list[_UserRecord] = []
        self._roles: list[_RoleRecord] = []
        self._sessions: dict[str, int] = {}
        self._franchises: list[_FranchiseRecord] = []
        self._stores: list[_StoreRecord] = []
        self._menu: list[MenuItem] = []
        self._orders: list[_OrderRecord] = []
        self._order_items: list[_OrderItemRecord] = []

        self._user_ids = itertools.count(1)
        self._franchise_ids = itertools.count(1)
        self._store_ids = itertools.count(1)
        self._menu_ids = itertools.count(1)
        self._order_ids = itertools.count(1)
        self._order_item_ids = itertools.count(1)

    async def _initialize(self) -> None:
        hashed = await hash_password(DEFAULT_ADMIN.password, self.bcrypt_rounds)
        async with self._lock:
            if not self._users:
                self._insert_user(DEFAULT_ADMIN, hashed)
                logger.info("Memory store was empty, seeded default admin")

    # =========================================================================
    # MENU
    # =========================================================================

    async def get_menu(self) -> list[MenuItem]:
        await self.ready()
        return [item.model_copy() for item in self._menu]

    async def add_menu_item(self, item: MenuItemCreate) -> MenuItem:
        await self.ready()
        async with self._lock:
            menu_item = MenuItem(id=next(self._menu_ids), **item.model_dump())
            self._menu.append(menu_item)
        return menu_item.model_copy()

    # =========================================================================
    # USERS & SESSIONS
    # =========================================================================

    async def add_user(self, user: UserCreate) -> User:
        await self.ready()
        hashed = await hash_password(user.password, self.bcrypt_rounds)
        async with self._lock:
            return self._insert_user(user, hashed)

    def _insert_user(self, user: UserCreate, hashed: str) -> User:
        targets = [self._role_target(assignment) for assignment in user.roles]

        record = _UserRecord(
            id=next(self._user_ids),
            name=user.name,
            email=user.email,
            password=hashed,
        )
        self._users.append(record)
        self._roles.extend(
            _RoleRecord(user_id=record.id, role=assignment.role, object_id=target)
            for assignment, target in zip(user.roles, targets)
        )
        return User(
            id=record.id,
            name=record.name,
            email=record.email,
            roles=[
                normalize_role(assignment.role, target)
                for assignment, target in zip(user.roles, targets)
            ],
        )

    def _role_target(self, assignment: RoleAssignment) -> int:
        """Franchise id a role points at; 0 for roles without one."""
        if assignment.role != Role.FRANCHISEE:
            return 0
        if assignment.object is not None:
            match = (f for f in self._franchises if f.name == assignment.object)
        else:
            match = (f for f in self._franchises if f.id == assignment.object_id)
        franchise = next(match, None)
        if franchise is None:
            raise MissingReferenceError("No ID found")
        return franchise.id

    def _to_user(self, record: _UserRecord) -> User:
        return User(
            id=record.id,
            name=record.name,
            email=record.email,
            roles=[
                normalize_role(role.role, role.object_id)
                for role in self._roles
                if role.user_id == record.id
            ],
        )

    async def get_user(self, email: Optional[str], password: Optional[str]) -> User:
        await self.ready()
        record = next((u for u in self._users if u.email == email), None)
        if record is None or not await verify_password(password, record.password):
            raise NotFoundError("unknown user")
        return self._to_user(record)

    async def update_user(
        self,
        user_id: int,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        await self.ready()
        hashed = await hash_password(password, self.bcrypt_rounds) if password else None
        async with self._lock:
            record = next((u for u in self._users if u.id == user_id), None)
            if record is None:
                raise BadRequestError("unknown user")
            if email:
                record.email = email
            if hashed:
                record.password = hashed
            return self._to_user(record)

    async def login_user(self, user_id: int, token: str) -> None:
        await self.ready()
        async with self._lock:
            self._sessions[get_token_signature(token)] = user_id

    async def is_logged_in(self, token: str) -> bool:
        await self.ready()
        signature = get_token_signature(token)
        if not signature:
            return False
        return signature in self._sessions

    async def logout_user(self, token: str) -> None:
        await self.ready()
        signature = get_token_signature(token)
        async with self._lock:
            if signature not in self._sessions:
                raise UnauthorizedError("cannot logout if not logged in")
            del self._sessions[signature]

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def get_orders(self, user: User, page: int = 1) -> UserOrders:
        await self.ready()
        offset = get_offset(page, self.list_per_page)
        mine = [o for o in self._orders if o.diner_id == user.id]
        orders = [
            DinerOrder(
                id=order.id,
                franchise_id=order.franchise_id,
                store_id=order.store_id,
                date=order.date,
                items=[order_item_from(i) for i in self._order_items if i.order_id == order.id],
            )
            for order in mine[offset:offset + self.list_per_page]
        ]
        return UserOrders(diner_id=user.id, orders=orders, page=page)

    async def add_diner_order(self, user: User, order: OrderCreate) -> DinerOrder:
        await self.ready()
        async with self._lock:
            menu = {item.id: item for item in self._menu}
            lines = []
            for item in order.items:
                menu_item = menu.get(item.menu_id)
                if menu_item is None:
                    raise MissingReferenceError("unknown menu item")
                lines.append(menu_item)

            record = _OrderRecord(
                id=next(self._order_ids),
                diner_id=user.id,
                franchise_id=order.franchise_id,
                store_id=order.store_id,
                date=utc_now(),
            )
            self._orders.append(record)

            items = []
            for menu_item in lines:
                item_record = _OrderItemRecord(
                    id=next(self._order_item_ids),
                    order_id=record.id,
                    menu_id=menu_item.id,
                    description=menu_item.description,
                    price=menu_item.price,
                )
                self._order_items.append(item_record)
                items.append(order_item_from(item_record))

        return DinerOrder(
            id=record.id,
            franchise_id=record.franchise_id,
            store_id=record.store_id,
            date=record.date,
            items=items,
            diner_id=user.id,
        )

    # =========================================================================
    # FRANCHISES & STORES
    # =========================================================================

    async def create_franchise(self, franchise: FranchiseCreate) -> Franchise:
        await self.ready()
        async with self._lock:
            admins = []
            for admin in franchise.admins:
                record = next((u for u in self._users if u.email == admin.email), None)
                if record is None:
                    raise NotFoundError(f"unknown user for franchise admin {admin.email} provided")
                admins.append(record)

            created = _FranchiseRecord(id=next(self._franchise_ids), name=franchise.name)
            self._franchises.append(created)
            self._roles.extend(
                _RoleRecord(user_id=admin.id, role=Role.FRANCHISEE, object_id=created.id)
                for admin in admins
            )

        return Franchise(
            id=created.id,
            name=created.name,
            admins=[User(id=a.id, name=a.name, email=a.email) for a in admins],
        )

    async def delete_franchise(self, franchise_id: int) -> None:
        await self.ready()
        async with self._lock:
            self._stores = [s for s in self._stores if s.franchise_id != franchise_id]
            self._roles = [
                r for r in self._roles
                if not (r.role == Role.FRANCHISEE and r.object_id == franchise_id)
            ]
            self._franchises = [f for f in self._franchises if f.id != franchise_id]

    async def get_franchises(self, auth_user: Optional[User] = None) -> list[Franchise]:
        await self.ready()
        if auth_user is not None and is_role(auth_user.roles, Role.ADMIN):
            return [self._franchise_detail(f) for f in self._franchises]
        return [
            Franchise(
                id=f.id,
                name=f.name,
                stores=[Store(id=s.id, name=s.name) for s in self._stores if s.franchise_id == f.id],
            )
            for f in self._franchises
        ]

    def _franchise_detail(self, record: _FranchiseRecord) -> Franchise:
        admin_ids = {
            r.user_id for r in self._roles
            if r.role == Role.FRANCHISEE and r.object_id == record.id
        }
        admins = [
            User(id=u.id, name=u.name, email=u.email)
            for u in self._users
            if u.id in admin_ids
        ]

        order_stores = {o.id: o.store_id for o in self._orders}
        revenue: dict[int, float] = defaultdict(float)
        for item in self._order_items:
            store_id = order_stores.get(item.order_id)
            if store_id is not None:
                revenue[store_id] += item.price

        stores = [
            Store(id=s.id, name=s.name, total_revenue=revenue.get(s.id, 0.0))
            for s in self._stores
            if s.franchise_id == record.id
        ]
        return Franchise(id=record.id, name=record.name, admins=admins, stores=stores)

    async def get_user_franchises(self, user_id: int) -> list[Franchise]:
        await self.ready()
        franchise_ids = {
            r.object_id for r in self._roles
            if r.role == Role.FRANCHISEE and r.user_id == user_id
        }
        return [self._franchise_detail(f) for f in self._franchises if f.id in franchise_ids]

    async def get_franchise(self, franchise_id: int) -> Optional[Franchise]:
        await self.ready()
        record = next((f for f in self._franchises if f.id == franchise_id), None)
        if record is None:
            return None
        return self._franchise_detail(record)

    async def create_store(self, franchise_id: int, store: StoreCreate) -> Store:
        await self.ready()
        async with self._lock:
            if not any(f.id == franchise_id for f in self._franchises):
                raise NotFoundError("unknown franchise")
            record = _StoreRecord(id=next(self._store_ids), franchise_id=franchise_id, name=store.name)
            self._stores.append(record)
        return Store(id=record.id, name=record.name, franchise_id=franchise_id)

    async def delete_store(self, franchise_id: int, store_id: int) -> None:
        await self.ready()
        async with self._lock:
            self._stores = [
                s for s in self._stores
                if not (s.franchise_id == franchise_id and s.id == store_id)
            ]

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    async def clear(self) -> None:
        await self.ready()
        hashed = await hash_password(DEFAULT_ADMIN.password, self.bcrypt_rounds)
        async with self._lock:
            self._reset()
            self._insert_user(DEFAULT_ADMIN, hashed)
        logger.info("Memory store cleared")
