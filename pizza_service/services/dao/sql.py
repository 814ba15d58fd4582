"""
Relational DAO Implementation

Persists everything through SQLAlchemy's async ORM. The schema is created
on first use and the default admin is seeded when the users table is
empty.

Each operation opens its own session, and with it a fresh connection
(see ``pizza_service.database``). Multi-row writes validate their
references first and commit once, so a failure leaves nothing behind.

Supported backends:
    - PostgreSQL via psycopg (default)
    - MySQL via aiomysql
    - SQLite via aiosqlite (tests and local runs)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Union

from sqlalchemy import delete, func, select, text
from sqlalchemy.engine import URL, Dialect, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pizza_service.core.exceptions import (
    BadRequestError,
    DatabaseError,
    MissingReferenceError,
    NotFoundError,
    UnauthorizedError,
)
from pizza_service.core.security import get_token_signature, hash_password, verify_password
from pizza_service.database import Base, create_engine, create_session_maker
from pizza_service.models import (
    AuthRow,
    DinerOrderRow,
    FranchiseRow,
    MenuRow,
    OrderItemRow,
    StoreRow,
    UserRoleRow,
    UserRow,
)
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


class SqlDAO(BaseDAO):
    """
    SQLAlchemy-backed persistence engine.

    Args:
        url: SQLAlchemy URL of the database (async driver)
        connect_timeout: Seconds to wait for a connection
        list_per_page: Orders per page in get_orders
        bcrypt_rounds: Cost factor for password hashes
    """

    def __init__(
        self,
        url: Union[URL, str],
        connect_timeout: int = 60,
        list_per_page: int = 10,
        bcrypt_rounds: int = 10,
        echo: bool = False,
    ):
        super().__init__(list_per_page=list_per_page, bcrypt_rounds=bcrypt_rounds)
        if isinstance(url, str):
            url = make_url(url)
        self.engine = create_engine(url, connect_timeout, echo=echo)
        self._session_maker = create_session_maker(self.engine)

    @property
    def provider_name(self) -> str:
        return "sql"

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        await self.ready()
        async with self._session_maker() as session:
            yield session

    async def _initialize(self) -> None:
        safe_url = self.engine.url.render_as_string(hide_password=True)
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            async with self._session_maker() as session:
                count = await session.scalar(select(func.count()).select_from(UserRow))
                if not count:
                    hashed = await hash_password(DEFAULT_ADMIN.password, self.bcrypt_rounds)
                    await self._insert_user(session, DEFAULT_ADMIN, hashed)
                    await session.commit()
                    logger.info("Database was empty, seeded default admin")
        except SQLAlchemyError as e:
            logger.error(f"Error initializing database {safe_url}: {e}")
            raise
        logger.info(f"Database ready ({safe_url})")

    async def dispose(self) -> None:
        await self.engine.dispose()

    # =========================================================================
    # MENU
    # =========================================================================

    async def get_menu(self) -> list[MenuItem]:
        async with self._session() as session:
            rows = (await session.scalars(select(MenuRow).order_by(MenuRow.id))).all()
            return [MenuItem.model_validate(row) for row in rows]

    async def add_menu_item(self, item: MenuItemCreate) -> MenuItem:
        async with self._session() as session:
            row = MenuRow(**item.model_dump())
            session.add(row)
            await session.commit()
            return MenuItem.model_validate(row)

    # =========================================================================
    # USERS & SESSIONS
    # =========================================================================

    async def add_user(self, user: UserCreate) -> User:
        hashed = await hash_password(user.password, self.bcrypt_rounds)
        async with self._session() as session:
            created = await self._insert_user(session, user, hashed)
            await session.commit()
            return created

    async def _insert_user(self, session: AsyncSession, user: UserCreate, hashed: str) -> User:
        targets = [await self._role_target(session, assignment) for assignment in user.roles]

        row = UserRow(name=user.name, email=user.email, password=hashed)
        session.add(row)
        await session.flush()

        session.add_all([
            UserRoleRow(user_id=row.id, role=assignment.role, object_id=target)
            for assignment, target in zip(user.roles, targets)
        ])
        await session.flush()

        return User(
            id=row.id,
            name=row.name,
            email=row.email,
            roles=[
                normalize_role(assignment.role, target)
                for assignment, target in zip(user.roles, targets)
            ],
        )

    async def _role_target(self, session: AsyncSession, assignment: RoleAssignment) -> int:
        """Franchise id a role points at; 0 for roles without one."""
        if assignment.role != Role.FRANCHISEE:
            return 0
        query = select(FranchiseRow.id)
        if assignment.object is not None:
            query = query.where(FranchiseRow.name == assignment.object)
        else:
            query = query.where(FranchiseRow.id == assignment.object_id)
        franchise_id = await session.scalar(query.order_by(FranchiseRow.id).limit(1))
        if franchise_id is None:
            raise MissingReferenceError("No ID found")
        return franchise_id

    async def _read_user(self, session: AsyncSession, row: UserRow) -> User:
        roles = (
            await session.scalars(
                select(UserRoleRow)
                .where(UserRoleRow.user_id == row.id)
                .order_by(UserRoleRow.id)
            )
        ).all()
        return User(
            id=row.id,
            name=row.name,
            email=row.email,
            roles=[normalize_role(role.role, role.object_id) for role in roles],
        )

    async def get_user(self, email: Optional[str], password: Optional[str]) -> User:
        async with self._session() as session:
            row = await session.scalar(
                select(UserRow).where(UserRow.email == email).order_by(UserRow.id).limit(1)
            )
            if row is None or not await verify_password(password, row.password):
                raise NotFoundError("unknown user")
            return await self._read_user(session, row)

    async def update_user(
        self,
        user_id: int,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        hashed = await hash_password(password, self.bcrypt_rounds) if password else None
        async with self._session() as session:
            row = await session.get(UserRow, user_id)
            if row is None:
                raise BadRequestError("unknown user")
            if email:
                row.email = email
            if hashed:
                row.password = hashed
            await session.commit()
            return await self._read_user(session, row)

    async def login_user(self, user_id: int, token: str) -> None:
        async with self._session() as session:
            await session.merge(AuthRow(token=get_token_signature(token), user_id=user_id))
            await session.commit()

    async def is_logged_in(self, token: str) -> bool:
        signature = get_token_signature(token)
        if not signature:
            return False
        async with self._session() as session:
            return await session.get(AuthRow, signature) is not None

    async def logout_user(self, token: str) -> None:
        signature = get_token_signature(token)
        async with self._session() as session:
            result = await session.execute(delete(AuthRow).where(AuthRow.token == signature))
            if result.rowcount == 0:
                raise UnauthorizedError("cannot logout if not logged in")
            await session.commit()

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def get_orders(self, user: User, page: int = 1) -> UserOrders:
        offset = get_offset(page, self.list_per_page)
        async with self._session() as session:
            rows = (
                await session.scalars(
                    select(DinerOrderRow)
                    .where(DinerOrderRow.diner_id == user.id)
                    .order_by(DinerOrderRow.id)
                    .offset(offset)
                    .limit(self.list_per_page)
                )
            ).all()

            orders = []
            for row in rows:
                items = (
                    await session.scalars(
                        select(OrderItemRow)
                        .where(OrderItemRow.order_id == row.id)
                        .order_by(OrderItemRow.id)
                    )
                ).all()
                orders.append(DinerOrder(
                    id=row.id,
                    franchise_id=row.franchise_id,
                    store_id=row.store_id,
                    date=row.date,
                    items=[order_item_from(item) for item in items],
                ))
            return UserOrders(diner_id=user.id, orders=orders, page=page)

    async def add_diner_order(self, user: User, order: OrderCreate) -> DinerOrder:
        async with self._session() as session:
            menu_rows = []
            for item in order.items:
                menu_row = await session.get(MenuRow, item.menu_id)
                if menu_row is None:
                    raise MissingReferenceError("unknown menu item")
                menu_rows.append(menu_row)

            order_row = DinerOrderRow(
                diner_id=user.id,
                franchise_id=order.franchise_id,
                store_id=order.store_id,
                date=utc_now(),
            )
            session.add(order_row)
            await session.flush()

            item_rows = [
                OrderItemRow(
                    order_id=order_row.id,
                    menu_id=menu_row.id,
                    description=menu_row.description,
                    price=menu_row.price,
                )
                for menu_row in menu_rows
            ]
            session.add_all(item_rows)
            await session.commit()

            return DinerOrder(
                id=order_row.id,
                franchise_id=order_row.franchise_id,
                store_id=order_row.store_id,
                date=order_row.date,
                items=[order_item_from(row) for row in item_rows],
                diner_id=user.id,
            )

    # =========================================================================
    # FRANCHISES & STORES
    # =========================================================================

    async def create_franchise(self, franchise: FranchiseCreate) -> Franchise:
        async with self._session() as session:
            admins = []
            for admin in franchise.admins:
                row = await session.scalar(
                    select(UserRow).where(UserRow.email == admin.email).order_by(UserRow.id).limit(1)
                )
                if row is None:
                    raise NotFoundError(f"unknown user for franchise admin {admin.email} provided")
                admins.append(row)

            franchise_row = FranchiseRow(name=franchise.name)
            session.add(franchise_row)
            await session.flush()

            session.add_all([
                UserRoleRow(user_id=admin.id, role=Role.FRANCHISEE, object_id=franchise_row.id)
                for admin in admins
            ])
            await session.commit()

            return Franchise(
                id=franchise_row.id,
                name=franchise_row.name,
                admins=[User(id=a.id, name=a.name, email=a.email) for a in admins],
            )

    async def delete_franchise(self, franchise_id: int) -> None:
        async with self._session() as session:
            try:
                async with session.begin():
                    await session.execute(delete(StoreRow).where(StoreRow.franchise_id == franchise_id))
                    await session.execute(
                        delete(UserRoleRow).where(
                            UserRoleRow.role == Role.FRANCHISEE,
                            UserRoleRow.object_id == franchise_id,
                        )
                    )
                    await session.execute(delete(FranchiseRow).where(FranchiseRow.id == franchise_id))
            except SQLAlchemyError as e:
                logger.error(f"Franchise #{franchise_id} deletion rolled back: {e}")
                raise DatabaseError("unable to delete franchise") from e

    async def get_franchises(self, auth_user: Optional[User] = None) -> list[Franchise]:
        detailed = auth_user is not None and is_role(auth_user.roles, Role.ADMIN)
        async with self._session() as session:
            rows = (await session.scalars(select(FranchiseRow).order_by(FranchiseRow.id))).all()
            if detailed:
                return [await self._franchise_detail(session, row) for row in rows]

            franchises = []
            for row in rows:
                stores = (
                    await session.scalars(
                        select(StoreRow).where(StoreRow.franchise_id == row.id).order_by(StoreRow.id)
                    )
                ).all()
                franchises.append(Franchise(
                    id=row.id,
                    name=row.name,
                    stores=[Store(id=s.id, name=s.name) for s in stores],
                ))
            return franchises

    async def _franchise_detail(self, session: AsyncSession, row: FranchiseRow) -> Franchise:
        admins = (
            await session.execute(
                select(UserRow.id, UserRow.name, UserRow.email)
                .join(UserRoleRow, UserRoleRow.user_id == UserRow.id)
                .where(UserRoleRow.object_id == row.id, UserRoleRow.role == Role.FRANCHISEE)
                .distinct()
                .order_by(UserRow.id)
            )
        ).all()

        # Revenue of stores without orders sums to NULL
        revenue = (
            select(
                StoreRow.id,
                StoreRow.name,
                func.coalesce(func.sum(OrderItemRow.price), 0).label("total_revenue"),
            )
            .select_from(StoreRow)
            .outerjoin(DinerOrderRow, DinerOrderRow.store_id == StoreRow.id)
            .outerjoin(OrderItemRow, OrderItemRow.order_id == DinerOrderRow.id)
            .where(StoreRow.franchise_id == row.id)
            .group_by(StoreRow.id, StoreRow.name)
            .order_by(StoreRow.id)
        )
        stores = (await session.execute(revenue)).all()

        return Franchise(
            id=row.id,
            name=row.name,
            admins=[User(id=a.id, name=a.name, email=a.email) for a in admins],
            stores=[
                Store(id=s.id, name=s.name, total_revenue=float(s.total_revenue))
                for s in stores
            ],
        )

    async def get_user_franchises(self, user_id: int) -> list[Franchise]:
        async with self._session() as session:
            franchise_ids = select(UserRoleRow.object_id).where(
                UserRoleRow.role == Role.FRANCHISEE,
                UserRoleRow.user_id == user_id,
            )
            rows = (
                await session.scalars(
                    select(FranchiseRow)
                    .where(FranchiseRow.id.in_(franchise_ids))
                    .order_by(FranchiseRow.id)
                )
            ).all()
            return [await self._franchise_detail(session, row) for row in rows]

    async def get_franchise(self, franchise_id: int) -> Optional[Franchise]:
        async with self._session() as session:
            row = await session.get(FranchiseRow, franchise_id)
            if row is None:
                return None
            return await self._franchise_detail(session, row)

    async def create_store(self, franchise_id: int, store: StoreCreate) -> Store:
        async with self._session() as session:
            if await session.get(FranchiseRow, franchise_id) is None:
                raise NotFoundError("unknown franchise")
            row = StoreRow(franchise_id=franchise_id, name=store.name)
            session.add(row)
            await session.commit()
            return Store(id=row.id, name=row.name, franchise_id=franchise_id)

    async def delete_store(self, franchise_id: int, store_id: int) -> None:
        async with self._session() as session:
            await session.execute(
                delete(StoreRow).where(StoreRow.franchise_id == franchise_id, StoreRow.id == store_id)
            )
            await session.commit()

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    async def clear(self) -> None:
        await self.ready()
        hashed = await hash_password(DEFAULT_ADMIN.password, self.bcrypt_rounds)

        statements = _truncate_statements(self.engine.dialect)

        if self.engine.dialect.name == "mysql":
            # TRUNCATE commits implicitly, so the reseed gets its own transaction
            async with self.engine.begin() as conn:
                for statement in statements:
                    await conn.execute(text(statement))
            async with self._session() as session:
                await self._insert_user(session, DEFAULT_ADMIN, hashed)
                await session.commit()
        else:
            async with self._session() as session:
                async with session.begin():
                    for statement in statements:
                        await session.execute(text(statement))
                    await self._insert_user(session, DEFAULT_ADMIN, hashed)
        logger.info("Database cleared")


def _truncate_statements(dialect: Dialect) -> list[str]:
    """
    Statements that empty every table and reset id sequences.

    Children come before parents so backends that enforce foreign keys
    during the wipe accept the order.
    """
    preparer = dialect.identifier_preparer
    tables = [preparer.format_table(table) for table in reversed(Base.metadata.sorted_tables)]

    if dialect.name == "mysql":
        return [
            "SET FOREIGN_KEY_CHECKS = 0",
            *(f"TRUNCATE TABLE {table}" for table in tables),
            "SET FOREIGN_KEY_CHECKS = 1",
        ]
    if dialect.name == "postgresql":
        return [f"TRUNCATE TABLE {', '.join(tables)} RESTART IDENTITY CASCADE"]

    statements = [f"DELETE FROM {table}" for table in tables]
    if dialect.name == "sqlite":
        # AUTOINCREMENT counters live here
        statements.append("DELETE FROM sqlite_sequence")
    return statements
