"""
Shared test fixtures for the pizza service test suite.
"""

import uuid
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from pizza_service.context import AppContext, create_context
from pizza_service.core.config import DaoBackend, EnvironmentMode, Settings
from pizza_service.main import create_app
from pizza_service.services.dao import MemoryDAO, SqlDAO
from pizza_service.services.factory import MockFactoryService

TEST_ROUNDS = 4
ADMIN_EMAIL = "a@jwt.com"
ADMIN_PASSWORD = "admin"


def random_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@test.com"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ============================================================================
# Settings & Engines
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        env_mode=EnvironmentMode.DEVELOPMENT,
        dao_backend=DaoBackend.MEMORY,
        bcrypt_rounds=TEST_ROUNDS,
        jwt_secret="test-secret",
        chaos_failure_rate=1.0,
    )


def make_sql_dao(path, **kwargs) -> SqlDAO:
    return SqlDAO(
        f"sqlite+aiosqlite:///{path}",
        connect_timeout=5,
        bcrypt_rounds=TEST_ROUNDS,
        **kwargs,
    )


@pytest.fixture(params=["memory", "sql"])
async def dao(request, tmp_path):
    """Every persistence engine, each on a fresh store."""
    if request.param == "memory":
        engine = MemoryDAO(bcrypt_rounds=TEST_ROUNDS)
    else:
        engine = make_sql_dao(tmp_path / "pizza.db")
    yield engine
    await engine.dispose()


# ============================================================================
# Application
# ============================================================================


@pytest.fixture
def factory() -> MockFactoryService:
    return MockFactoryService(failure_rate=0.0)


@pytest.fixture
def context(settings, factory) -> AppContext:
    dao = MemoryDAO(list_per_page=settings.list_per_page, bcrypt_rounds=settings.bcrypt_rounds)
    return create_context(settings, dao=dao, factory=factory)


@pytest.fixture
async def client(context):
    app = create_app(context)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client


@pytest.fixture
def register(client):
    """Register a diner through the API; returns (user json, token)."""

    async def _register(name: str = "pizza diner", email: Optional[str] = None, password: str = "diner"):
        response = await client.post(
            "/api/auth",
            json={"name": name, "email": email or random_email("diner"), "password": password},
        )
        assert response.status_code == 200, response.text
        body = response.json()
        return body["user"], body["token"]

    return _register


@pytest.fixture
async def admin_token(client) -> str:
    response = await client.put("/api/auth", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.text
    return response.json()["token"]
