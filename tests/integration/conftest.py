"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session. Requires PostgreSQL with ``alembic upgrade head``.
"""

import uuid

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import app

_RUN = uuid.uuid4().hex[:8]


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client - keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _login_headers(client: AsyncClient, name: str) -> dict[str, str]:
    username = f"{name}_{_RUN}"
    await client.post("/api/v1/auth/register", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": "TestPass123!",
    })
    login_resp = await client.post("/api/v1/auth/login", json={
        "username": username,
        "password": "TestPass123!",
    })
    token = login_resp.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def buyer(client: AsyncClient) -> dict[str, str]:
    return await _login_headers(client, "buyer")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def dev_a(client: AsyncClient) -> dict[str, str]:
    return await _login_headers(client, "dev_a")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def dev_b(client: AsyncClient) -> dict[str, str]:
    return await _login_headers(client, "dev_b")
