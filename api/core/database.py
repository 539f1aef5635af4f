"""Database engine, session, and pool management.

Production runs on PostgreSQL via asyncpg. SQLite (aiosqlite) is
supported for tests and local experiments; foreign keys are switched on
for every SQLite connection so join-table cascades behave the same.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from typing import Annotated, NamedTuple, TypedDict

from fastapi import Depends, Request
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import QueuePool

from core.config import get_settings
from core.logger import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class PoolStatus(NamedTuple):
    """Connection pool status for health checks."""

    pool_size: int
    checked_out: int
    overflow: int
    checked_in: int


class HealthCheckResult(TypedDict):
    """Return type for comprehensive_health_check."""

    database: bool
    pool: PoolStatus | None


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores FOREIGN KEY clauses unless asked per connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _setup_pool_event_listeners(engine: AsyncEngine) -> None:
    pool = engine.sync_engine.pool

    @event.listens_for(pool, "checkout")
    def _on_checkout(dbapi_conn, connection_record, connection_proxy):
        if isinstance(pool, QueuePool):
            overflow = pool.overflow()
            if overflow > 0:
                logger.warning(
                    "db.pool.overflow",
                    db_pool_checked_out=pool.checkedout(),
                    db_pool_size=pool.size(),
                    db_pool_overflow_count=overflow,
                )


def create_engine(database_url: str | None = None) -> AsyncEngine:
    settings = get_settings()
    database_url = database_url or settings.database_url

    if database_url.startswith("sqlite"):
        engine = create_async_engine(database_url, echo=settings.db_echo)
        enable_sqlite_foreign_keys(engine)
        return engine

    engine = create_async_engine(
        database_url,
        echo=settings.db_echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        # pool_recycle provides staleness protection instead of pre-ping
        pool_pre_ping=False,
        connect_args={
            "server_settings": {
                "statement_timeout": str(settings.db_statement_timeout_ms)
            }
        },
    )
    _setup_pool_event_listeners(engine)
    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def get_db(request: Request) -> AsyncGenerator[AsyncSession]:
    """Auto-commits on success, rolls back on exception.

    The whole request is one transaction, so a create (insert, url patch,
    relation attachment) is all-or-nothing.

    Notes:
        - Use flush() if you need auto-generated IDs mid-request
        - Do NOT call commit() - this dependency handles it
    """
    session_maker: async_sessionmaker[AsyncSession] = request.app.state.session_maker
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            try:
                await session.rollback()
            except Exception as rollback_err:
                logger.warning("db.rollback.failed", error=str(rollback_err))
            raise


DbSession = Annotated[AsyncSession, Depends(get_db)]


async def check_db_connection(engine: AsyncEngine, timeout: float = 30) -> None:
    """Verify database is reachable."""
    async with asyncio.timeout(timeout):
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.rollback()


async def init_db(engine: AsyncEngine) -> None:
    """Verify database is reachable. Schema managed via migrations."""
    logger.info("db.connectivity.verifying")
    await check_db_connection(engine)
    logger.info("db.connectivity.verified")


async def warm_pool(engine: AsyncEngine) -> None:
    """Pre-fill the connection pool so early requests don't pay connection cost."""
    if not isinstance(engine.sync_engine.pool, QueuePool):
        return
    settings = get_settings()
    warm_count = min(settings.db_pool_size - 1, 3)  # already have 1 from init_db
    if warm_count <= 0:
        return

    logger.info("db.pool.warming", extra_connections=warm_count)
    try:
        async with asyncio.timeout(30):
            await asyncio.gather(
                *[check_db_connection(engine) for _ in range(warm_count)],
                return_exceptions=True,
            )
        logger.info("db.pool.warmed")
    except TimeoutError:
        # Non-fatal; the pool creates connections on demand
        logger.warning("db.pool.warming.timeout")


async def dispose_engine(engine: AsyncEngine) -> None:
    await engine.dispose()
    logger.info("db.engine.disposed")


def get_pool_status(engine: AsyncEngine) -> PoolStatus | None:
    """Returns pool status, or None if pool is not a QueuePool."""
    pool = engine.sync_engine.pool

    if isinstance(pool, QueuePool):
        return PoolStatus(
            pool_size=pool.size(),
            checked_out=pool.checkedout(),
            overflow=pool.overflow(),
            checked_in=pool.checkedin(),
        )
    return None


async def comprehensive_health_check(engine: AsyncEngine) -> HealthCheckResult:
    """Run database connectivity and pool status checks."""
    result: HealthCheckResult = {"database": False, "pool": None}

    try:
        await check_db_connection(engine, timeout=5)
        result["database"] = True
    except Exception as e:
        logger.warning("db.health_check.failed", error=str(e))

    result["pool"] = get_pool_status(engine)
    return result
