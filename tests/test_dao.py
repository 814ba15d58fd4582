"""
Persistence contract tests, run against every engine.
"""

import asyncio
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from pizza_service.core.exceptions import (
    BadRequestError,
    DatabaseError,
    MissingReferenceError,
    NotFoundError,
    UnauthorizedError,
)
from pizza_service.schemas import (
    FranchiseAdmin,
    FranchiseCreate,
    MenuItemCreate,
    OrderCreate,
    OrderItemCreate,
    Role,
    RoleAssignment,
    StoreCreate,
    User,
    UserCreate,
)
from pizza_service.services.dao import MemoryDAO

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, make_sql_dao, random_email


def diner(email=None, password="diner", name="pizza diner") -> UserCreate:
    return UserCreate(name=name, email=email or random_email(), password=password)


async def admin_user(dao) -> User:
    return await dao.get_user(ADMIN_EMAIL, ADMIN_PASSWORD)


async def franchise_with_stores(dao, *store_names, admins=()):
    franchise = await dao.create_franchise(
        FranchiseCreate(name=f"franchise-{random_email()}", admins=[FranchiseAdmin(email=e) for e in admins])
    )
    stores = [await dao.create_store(franchise.id, StoreCreate(name=name)) for name in store_names]
    return franchise, stores


# ============================================================================
# Bootstrap
# ============================================================================


class TestBootstrap:

    async def test_default_admin_seeded(self, dao):
        admin = await admin_user(dao)
        assert admin.id == 1
        assert admin.name == "常用名字"
        assert admin.email == ADMIN_EMAIL
        assert admin.roles == [RoleAssignment(role=Role.ADMIN)]

    async def test_ready_is_idempotent(self, dao):
        await dao.ready()
        await dao.ready()
        assert (await dao.get_menu()) == []

    async def test_concurrent_first_calls_seed_once(self, dao):
        await asyncio.gather(*(dao.ready() for _ in range(10)), *(dao.get_menu() for _ in range(10)))

        admin = await admin_user(dao)
        assert admin.id == 1
        # a second seed row would have taken id 2
        assert (await dao.add_user(diner())).id == 2


# ============================================================================
# Users
# ============================================================================


class TestUsers:

    async def test_add_then_get_returns_roles_without_password(self, dao):
        email = random_email()
        created = await dao.add_user(diner(email=email))

        fetched = await dao.get_user(email, "diner")
        assert fetched.id == created.id
        assert fetched.roles == [RoleAssignment(role=Role.DINER)]
        assert "password" not in fetched.to_json()
        assert "password" not in created.to_json()

    async def test_ids_increase(self, dao):
        first = await dao.add_user(diner())
        second = await dao.add_user(diner())
        assert second.id == first.id + 1

    async def test_unknown_franchise_role_persists_nothing(self, dao):
        email = random_email()
        user = UserCreate(
            name="ghost",
            email=email,
            password="pw",
            roles=[RoleAssignment(role=Role.DINER), RoleAssignment(role=Role.FRANCHISEE, object="no such franchise")],
        )
        with pytest.raises(MissingReferenceError):
            await dao.add_user(user)
        with pytest.raises(NotFoundError):
            await dao.get_user(email, "pw")

    async def test_franchisee_role_resolves_franchise_name(self, dao):
        franchise, _ = await franchise_with_stores(dao)
        email = random_email()
        created = await dao.add_user(
            UserCreate(
                name="owner",
                email=email,
                password="pw",
                roles=[RoleAssignment(role=Role.FRANCHISEE, object=franchise.name)],
            )
        )
        assert created.roles == [RoleAssignment(role=Role.FRANCHISEE, object_id=franchise.id)]

        fetched = await dao.get_user(email, "pw")
        assert fetched.roles == [RoleAssignment(role=Role.FRANCHISEE, object_id=franchise.id)]
        assert [f.id for f in await dao.get_user_franchises(created.id)] == [franchise.id]

    @pytest.mark.parametrize("password", ["wrong", "", None])
    async def test_bad_password_is_not_found(self, dao, password):
        email = random_email()
        await dao.add_user(diner(email=email))
        with pytest.raises(NotFoundError):
            await dao.get_user(email, password)

    async def test_unknown_email_is_not_found(self, dao):
        with pytest.raises(NotFoundError):
            await dao.get_user(random_email(), "diner")

    async def test_duplicate_email_resolves_to_lowest_id(self, dao):
        email = random_email()
        first = await dao.add_user(diner(email=email, name="first"))
        await dao.add_user(diner(email=email, name="second"))
        assert (await dao.get_user(email, "diner")).id == first.id

    async def test_update_user(self, dao):
        created = await dao.add_user(diner())
        new_email = random_email("renamed")

        updated = await dao.update_user(created.id, email=new_email, password="fresh")
        assert updated.id == created.id
        assert updated.email == new_email
        assert updated.roles == [RoleAssignment(role=Role.DINER)]

        assert (await dao.get_user(new_email, "fresh")).id == created.id
        with pytest.raises(NotFoundError):
            await dao.get_user(new_email, "diner")

    async def test_update_without_changes_keeps_credentials(self, dao):
        email = random_email()
        created = await dao.add_user(diner(email=email))
        await dao.update_user(created.id)
        assert (await dao.get_user(email, "diner")).id == created.id

    async def test_update_unknown_user(self, dao):
        with pytest.raises(BadRequestError):
            await dao.update_user(9999, email=random_email())


# ============================================================================
# Sessions
# ============================================================================


class TestSessions:

    async def test_login_logout_round_trip(self, dao):
        token = "header.payload.signature"
        await dao.login_user(1, token)
        assert await dao.is_logged_in(token)

        await dao.logout_user(token)
        assert not await dao.is_logged_in(token)

    async def test_sessions_keyed_by_signature(self, dao):
        await dao.login_user(1, "a.b.shared")
        assert await dao.is_logged_in("x.y.shared")

    async def test_logout_without_session(self, dao):
        with pytest.raises(UnauthorizedError):
            await dao.logout_user("a.b.never")

    async def test_malformed_token_is_never_logged_in(self, dao):
        assert not await dao.is_logged_in("not-a-jwt")
        assert not await dao.is_logged_in("")


# ============================================================================
# Menu & Orders
# ============================================================================


class TestMenu:

    async def test_add_menu_items(self, dao):
        veggie = await dao.add_menu_item(MenuItemCreate(title="Veggie", description="garden", image="p1.png", price=0.0038))
        pepperoni = await dao.add_menu_item(MenuItemCreate(title="Pepperoni", price=0.0042))

        assert veggie.id != pepperoni.id
        menu = await dao.get_menu()
        assert [item.id for item in menu] == [veggie.id, pepperoni.id]
        assert menu[0].title == "Veggie"
        assert menu[0].price == 0.0038
        assert menu[1].description == ""


class TestOrders:

    async def test_price_and_description_come_from_menu(self, dao):
        item = await dao.add_menu_item(MenuItemCreate(title="Veggie", description="garden", price=2))
        user = await dao.add_user(diner())

        order = await dao.add_diner_order(
            user,
            OrderCreate(franchise_id=1, store_id=1, items=[OrderItemCreate(menu_id=item.id, description="cheap", price=0)]),
        )
        assert order.diner_id == user.id
        assert [(i.menu_id, i.description, i.price) for i in order.items] == [(item.id, "garden", 2.0)]

        history = await dao.get_orders(user)
        assert history.diner_id == user.id
        assert history.page == 1
        assert len(history.orders) == 1
        assert history.orders[0].items[0].price == 2.0
        assert history.orders[0].id == order.id

    async def test_order_date_is_naive_whole_seconds(self, dao):
        item = await dao.add_menu_item(MenuItemCreate(title="Veggie", price=1))
        user = await dao.add_user(diner())
        await dao.add_diner_order(user, OrderCreate(franchise_id=1, store_id=1, items=[OrderItemCreate(menu_id=item.id)]))

        stored = (await dao.get_orders(user)).orders[0].date
        assert isinstance(stored, datetime)
        assert stored.tzinfo is None
        assert stored.microsecond == 0

    async def test_unknown_menu_item_persists_nothing(self, dao):
        item = await dao.add_menu_item(MenuItemCreate(title="Veggie", price=1))
        user = await dao.add_user(diner())
        request = OrderCreate(
            franchise_id=1,
            store_id=1,
            items=[OrderItemCreate(menu_id=item.id), OrderItemCreate(menu_id=999)],
        )
        with pytest.raises(MissingReferenceError):
            await dao.add_diner_order(user, request)
        assert (await dao.get_orders(user)).orders == []

    async def test_page_past_the_end_is_empty(self, dao):
        item = await dao.add_menu_item(MenuItemCreate(title="Veggie", price=1))
        user = await dao.add_user(diner())
        await dao.add_diner_order(user, OrderCreate(franchise_id=1, store_id=1, items=[OrderItemCreate(menu_id=item.id)]))

        page = await dao.get_orders(user, page=2)
        assert page.to_json() == {"dinerId": user.id, "orders": [], "page": 2}

    async def test_pagination_in_id_order(self, dao):
        item = await dao.add_menu_item(MenuItemCreate(title="Veggie", price=1))
        user = await dao.add_user(diner())
        ids = []
        for _ in range(dao.list_per_page + 1):
            order = await dao.add_diner_order(user, OrderCreate(franchise_id=1, store_id=1, items=[OrderItemCreate(menu_id=item.id)]))
            ids.append(order.id)

        first = await dao.get_orders(user, page=1)
        second = await dao.get_orders(user, page=2)
        assert [o.id for o in first.orders] == ids[:dao.list_per_page]
        assert [o.id for o in second.orders] == ids[dao.list_per_page:]

    async def test_orders_are_per_diner(self, dao):
        item = await dao.add_menu_item(MenuItemCreate(title="Veggie", price=1))
        alice = await dao.add_user(diner())
        bob = await dao.add_user(diner())
        await dao.add_diner_order(alice, OrderCreate(franchise_id=1, store_id=1, items=[OrderItemCreate(menu_id=item.id)]))
        assert (await dao.get_orders(bob)).orders == []

    async def test_page_below_one_rejected(self, dao):
        user = await dao.add_user(diner())
        with pytest.raises(BadRequestError):
            await dao.get_orders(user, page=0)


# ============================================================================
# Franchises & Stores
# ============================================================================


class TestFranchises:

    async def test_create_with_registered_admin(self, dao):
        email = random_email("owner")
        owner = await dao.add_user(diner(email=email, name="owner"))

        franchise = await dao.create_franchise(FranchiseCreate(name="pizzaPocket", admins=[FranchiseAdmin(email=email)]))
        assert franchise.name == "pizzaPocket"
        assert [(a.id, a.name, a.email) for a in franchise.admins] == [(owner.id, "owner", email)]
        assert franchise.stores is None

        roles = (await dao.get_user(email, "diner")).roles
        assert RoleAssignment(role=Role.FRANCHISEE, object_id=franchise.id) in roles

    async def test_create_with_unknown_admin_persists_nothing(self, dao):
        with pytest.raises(NotFoundError):
            await dao.create_franchise(
                FranchiseCreate(name="pizzaPocket", admins=[FranchiseAdmin(email=random_email("nobody"))])
            )
        assert await dao.get_franchises() == []

    async def test_store_revenue(self, dao):
        owner_email = random_email("owner")
        await dao.add_user(diner(email=owner_email))
        franchise, (busy, quiet) = await franchise_with_stores(dao, "busy", "quiet", admins=[owner_email])
        item = await dao.add_menu_item(MenuItemCreate(title="Veggie", price=1))
        user = await dao.add_user(diner())
        await dao.add_diner_order(
            user,
            OrderCreate(franchise_id=franchise.id, store_id=busy.id, items=[OrderItemCreate(menu_id=item.id)]),
        )

        detail = await dao.get_franchise(franchise.id)
        assert [(s.id, s.total_revenue) for s in detail.stores] == [(busy.id, 1.0), (quiet.id, 0.0)]
        assert [a.email for a in detail.admins] == [owner_email]

    async def test_revenue_is_live(self, dao):
        franchise, (store,) = await franchise_with_stores(dao, "SLC")
        item = await dao.add_menu_item(MenuItemCreate(title="Veggie", price=1.5))
        user = await dao.add_user(diner())
        order = OrderCreate(franchise_id=franchise.id, store_id=store.id, items=[OrderItemCreate(menu_id=item.id)] * 2)

        await dao.add_diner_order(user, order)
        assert (await dao.get_franchise(franchise.id)).stores[0].total_revenue == 3.0
        await dao.add_diner_order(user, order)
        assert (await dao.get_franchise(franchise.id)).stores[0].total_revenue == 6.0

    async def test_list_for_admin_is_detailed(self, dao):
        franchise, (store,) = await franchise_with_stores(dao, "SLC")

        detailed = await dao.get_franchises(await admin_user(dao))
        assert detailed[0].admins == []
        assert detailed[0].stores[0].total_revenue == 0.0

        public = await dao.get_franchises()
        assert public[0].to_json() == {"id": franchise.id, "name": franchise.name, "stores": [{"id": store.id, "name": "SLC"}]}

        as_diner = await dao.get_franchises(await dao.add_user(diner()))
        assert as_diner[0].admins is None

    async def test_list_in_id_order(self, dao):
        first, _ = await franchise_with_stores(dao)
        second, _ = await franchise_with_stores(dao)
        assert [f.id for f in await dao.get_franchises()] == [first.id, second.id]

    async def test_get_unknown_franchise(self, dao):
        assert await dao.get_franchise(404) is None

    async def test_user_franchises(self, dao):
        email = random_email("owner")
        owner = await dao.add_user(diner(email=email))
        mine, _ = await franchise_with_stores(dao, "SLC", admins=[email])
        await franchise_with_stores(dao, "NYC")

        franchises = await dao.get_user_franchises(owner.id)
        assert [f.id for f in franchises] == [mine.id]
        assert franchises[0].stores[0].name == "SLC"
        assert await dao.get_user_franchises(9999) == []

    async def test_delete_franchise_cascades(self, dao):
        email = random_email("owner")
        owner = await dao.add_user(diner(email=email))
        franchise, _ = await franchise_with_stores(dao, "SLC", "NYC", admins=[email])

        await dao.delete_franchise(franchise.id)
        assert await dao.get_franchise(franchise.id) is None
        assert await dao.get_user_franchises(owner.id) == []
        assert (await dao.get_user(email, "diner")).roles == [RoleAssignment(role=Role.DINER)]

        await dao.delete_franchise(franchise.id)

    async def test_delete_franchise_keeps_other_franchises(self, dao):
        doomed, _ = await franchise_with_stores(dao, "SLC")
        kept, (kept_store,) = await franchise_with_stores(dao, "NYC")
        await dao.delete_franchise(doomed.id)

        remaining = await dao.get_franchises()
        assert [f.id for f in remaining] == [kept.id]
        assert [s.id for s in remaining[0].stores] == [kept_store.id]

    async def test_create_store(self, dao):
        franchise, _ = await franchise_with_stores(dao)
        store = await dao.create_store(franchise.id, StoreCreate(name="SLC"))
        assert store.to_json() == {"id": store.id, "name": "SLC", "franchiseId": franchise.id}

    async def test_create_store_unknown_franchise(self, dao):
        with pytest.raises(NotFoundError):
            await dao.create_store(404, StoreCreate(name="SLC"))

    async def test_delete_store(self, dao):
        franchise, (slc, nyc) = await franchise_with_stores(dao, "SLC", "NYC")
        await dao.delete_store(franchise.id, slc.id)
        await dao.delete_store(franchise.id, slc.id)
        assert [s.id for s in (await dao.get_franchise(franchise.id)).stores] == [nyc.id]

    async def test_delete_store_requires_matching_franchise(self, dao):
        franchise, (store,) = await franchise_with_stores(dao, "SLC")
        other, _ = await franchise_with_stores(dao)
        await dao.delete_store(other.id, store.id)
        assert [s.id for s in (await dao.get_franchise(franchise.id)).stores] == [store.id]


# ============================================================================
# Maintenance
# ============================================================================


class TestClear:

    async def test_clear_leaves_only_default_admin(self, dao):
        email = random_email()
        await dao.add_user(diner(email=email))
        await dao.add_menu_item(MenuItemCreate(title="Veggie", price=1))
        await franchise_with_stores(dao, "SLC")
        await dao.login_user(1, "a.b.c")

        await dao.clear()

        admin = await admin_user(dao)
        assert admin.id == 1
        with pytest.raises(NotFoundError):
            await dao.get_user(email, "diner")
        assert await dao.get_menu() == []
        assert await dao.get_franchises() == []
        assert not await dao.is_logged_in("a.b.c")

    async def test_ids_restart_after_clear(self, dao):
        await dao.add_user(diner())
        await dao.add_menu_item(MenuItemCreate(title="Veggie", price=1))
        await dao.clear()

        assert (await dao.add_user(diner())).id == 2
        assert (await dao.add_menu_item(MenuItemCreate(title="Veggie", price=1))).id == 1


# ============================================================================
# Relational transactions
# ============================================================================


class TestSqlTransactions:

    @pytest.fixture
    async def sql_dao(self, tmp_path):
        engine = make_sql_dao(tmp_path / "pizza.db")
        yield engine
        await engine.dispose()

    async def test_failed_franchise_delete_rolls_back(self, sql_dao, monkeypatch):
        owner_email = random_email("owner")
        owner = await sql_dao.add_user(diner(email=owner_email, name="owner"))
        franchise, (store,) = await franchise_with_stores(sql_dao, "SLC", admins=[owner_email])

        original_execute = AsyncSession.execute
        statements = []

        async def execute(session, statement, *args, **kwargs):
            statements.append(statement)
            if len(statements) == 3:
                raise OperationalError(str(statement), {}, Exception("database is locked"))
            return await original_execute(session, statement, *args, **kwargs)

        monkeypatch.setattr(AsyncSession, "execute", execute)
        with pytest.raises(DatabaseError) as exc_info:
            await sql_dao.delete_franchise(franchise.id)
        monkeypatch.undo()

        assert exc_info.value.message == "unable to delete franchise"
        assert exc_info.value.status_code == 500

        survivor = await sql_dao.get_franchise(franchise.id)
        assert [(s.id, s.name) for s in survivor.stores] == [(store.id, "SLC")]
        assert [a.id for a in survivor.admins] == [owner.id]
        roles = (await sql_dao.get_user(owner_email, "diner")).roles
        assert RoleAssignment(role=Role.FRANCHISEE, object_id=franchise.id) in roles

    async def test_failed_reseed_keeps_existing_data(self, sql_dao, monkeypatch):
        await sql_dao.add_menu_item(MenuItemCreate(title="Veggie", price=1))
        email = random_email()
        await sql_dao.add_user(diner(email=email))

        async def broken_insert(*args, **kwargs):
            raise OperationalError("INSERT INTO users", {}, Exception("disk full"))

        monkeypatch.setattr(sql_dao, "_insert_user", broken_insert)
        with pytest.raises(OperationalError):
            await sql_dao.clear()
        monkeypatch.undo()

        assert [item.title for item in await sql_dao.get_menu()] == ["Veggie"]
        assert (await admin_user(sql_dao)).id == 1
        assert (await sql_dao.get_user(email, "diner")).email == email


# ============================================================================
# Engine parity
# ============================================================================


async def _scenario(dao) -> list:
    """A mixed workload whose results should not depend on the engine."""
    results = []
    owner_email = "owner@test.com"
    owner = await dao.add_user(diner(email=owner_email, name="owner"))
    results.append(owner.to_json())

    item = await dao.add_menu_item(MenuItemCreate(title="Veggie", description="garden", price=0.25))
    other = await dao.add_menu_item(MenuItemCreate(title="Pepperoni", price=0.5))
    results.append([m.to_json() for m in await dao.get_menu()])

    franchise = await dao.create_franchise(FranchiseCreate(name="pizzaPocket", admins=[FranchiseAdmin(email=owner_email)]))
    store = await dao.create_store(franchise.id, StoreCreate(name="SLC"))
    await dao.create_store(franchise.id, StoreCreate(name="NYC"))
    results.append(franchise.to_json())

    customer = await dao.add_user(diner(email="customer@test.com"))
    order = await dao.add_diner_order(
        customer,
        OrderCreate(
            franchise_id=franchise.id,
            store_id=store.id,
            items=[OrderItemCreate(menu_id=item.id), OrderItemCreate(menu_id=other.id), OrderItemCreate(menu_id=item.id)],
        ),
    )
    results.append(order.model_dump(exclude={"date"}, by_alias=True))

    history = await dao.get_orders(customer)
    results.append([o.model_dump(exclude={"date"}, by_alias=True) for o in history.orders])

    results.append([f.to_json() for f in await dao.get_franchises(await admin_user(dao))])
    results.append([f.to_json() for f in await dao.get_franchises()])
    results.append([f.to_json() for f in await dao.get_user_franchises(owner.id)])

    await dao.delete_franchise(franchise.id)
    results.append((await dao.get_user(owner_email, "diner")).to_json())
    return results


async def test_engines_agree(tmp_path):
    memory = MemoryDAO(bcrypt_rounds=4)
    sql = make_sql_dao(tmp_path / "parity.db")
    try:
        assert await _scenario(memory) == await _scenario(sql)
    finally:
        await sql.dispose()
