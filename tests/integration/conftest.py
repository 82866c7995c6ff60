"""Integration test fixtures: the ASGI app over the in-memory database."""

from collections.abc import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_lifecycle.api.app import create_app
from payroll_lifecycle.api.dependencies import get_db_session
from payroll_lifecycle.security import create_access_token


def _bearer(user) -> dict[str, str]:
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def bearer():
    """Factory for the Authorization header of a seeded user."""
    return _bearer


@pytest.fixture
async def seeded(session: AsyncSession, org, period):
    """Commit the seeded organization and period so request sessions see them."""
    await session.commit()
    return org


@pytest.fixture
def app(session_factory) -> FastAPI:
    """Application with the session dependency bound to the test database."""
    app = create_app()

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    return app


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client speaking to the app in-process."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def hr_headers(seeded) -> dict[str, str]:
    return _bearer(seeded.hr)


@pytest.fixture
def head_a_headers(seeded) -> dict[str, str]:
    return _bearer(seeded.head_a)


@pytest.fixture
def head_b_headers(seeded) -> dict[str, str]:
    return _bearer(seeded.head_b)
