"""Pytest configuration and shared fixtures.

This module provides:
- An in-memory SQLite database (aiosqlite) with foreign keys enforced
- Async session fixtures for repository/service tests
- FastAPI test clients: anonymous, regular user and admin
"""

# Set environment variables BEFORE any imports that trigger Settings validation
import os

os.environ.update(
    {
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "BASE_URL": "http://host",
        "DEBUG": "true",
        "RUN_MIGRATIONS_ON_STARTUP": "false",
    }
)
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from core.auth import create_access_token, hash_password
from core.config import Settings, clear_settings_cache, get_settings
from core.database import Base, create_session_maker, enable_sqlite_foreign_keys
from core.wide_event import clear_wide_event, init_wide_event
from models import User, UserRole
from repositories.user_repository import UserRepository

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "correct-horse-battery"


# =============================================================================
# Settings and context
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None]:
    """Reset settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture(autouse=True)
def setup_wide_event() -> Generator[None]:
    """Initialize wide_event context for all tests.

    In production RequestContextMiddleware does this; services record
    fields into it along the way.
    """
    init_wide_event()
    yield
    clear_wide_event()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine]:
    """Create a fresh in-memory database engine for each test.

    StaticPool keeps the single connection alive so every session sees
    the same database.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_maker(test_engine)


@pytest_asyncio.fixture
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Provide a database session for each test."""
    async with session_maker() as session:
        yield session
        await session.rollback()


# =============================================================================
# Accounts
# =============================================================================


async def _create_user(
    session_maker: async_sessionmaker[AsyncSession],
    username: str,
    role: UserRole,
) -> User:
    async with session_maker() as session:
        user = await UserRepository(session).create(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(TEST_PASSWORD),
            role=role,
        )
        await session.commit()
        return user


@pytest_asyncio.fixture
async def admin_user(session_maker: async_sessionmaker[AsyncSession]) -> User:
    return await _create_user(session_maker, "admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def regular_user(session_maker: async_sessionmaker[AsyncSession]) -> User:
    return await _create_user(session_maker, "padawan", UserRole.USER)


@pytest.fixture
def admin_token(admin_user: User) -> str:
    token, _ = create_access_token(admin_user.id, admin_user.role)
    return token


@pytest.fixture
def user_token(regular_user: User) -> str:
    token, _ = create_access_token(regular_user.id, regular_user.role)
    return token


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest.fixture
def app(
    test_engine: AsyncEngine,
    session_maker: async_sessionmaker[AsyncSession],
) -> Generator[FastAPI]:
    """The application wired to the test database.

    httpx's ASGITransport does not run the lifespan, so the state it
    would set up is assigned here.
    """
    from main import app as fastapi_app

    fastapi_app.state.engine = test_engine
    fastapi_app.state.session_maker = session_maker
    fastapi_app.state.init_done = True
    fastapi_app.state.init_error = None

    yield fastapi_app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Anonymous async HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_client(app: FastAPI, admin_token: str) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {admin_token}"},
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def user_client(app: FastAPI, user_token: str) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {user_token}"},
    ) as ac:
        yield ac
