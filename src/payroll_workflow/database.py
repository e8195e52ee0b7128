"""Database connection, session management and advisory locks."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from payroll_workflow.config import get_settings
from payroll_workflow.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


def get_engine(database_url: str | None = None) -> AsyncEngine:
    """Create async database engine."""
    url = database_url or get_settings().database_url
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Global engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Initialize database engine and session factory."""
    global _engine, _session_factory
    if _engine is None:
        _engine = get_engine()
        _session_factory = make_session_factory(_engine)
    return _engine, _session_factory


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session that commits on success."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# Process-local fallback for backends without advisory locks.
# Entries live only while someone holds or waits on the key.
_local_locks: dict[str, asyncio.Lock] = {}
_local_lock_users: dict[str, int] = {}


@asynccontextmanager
async def advisory_lock(session: AsyncSession, key: str) -> AsyncGenerator[None, None]:
    """Hold an exclusive lock on ``key`` for the duration of the block.

    On PostgreSQL this is a transaction-scoped advisory lock, released when
    the surrounding transaction commits or rolls back. Other backends fall
    back to an in-process lock released on exit.
    """
    if session.get_bind().dialect.name == "postgresql":
        await session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": key},
        )
        yield
        return

    lock = _local_locks.setdefault(key, asyncio.Lock())
    _local_lock_users[key] = _local_lock_users.get(key, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _local_lock_users[key] -= 1
        if not _local_lock_users[key]:
            del _local_lock_users[key]
            del _local_locks[key]


def record_lock_key(record_id: object) -> str:
    return f"payroll_record:{record_id}"


def period_lock_key(period_id: object) -> str:
    return f"payroll_period:{period_id}"


def request_lock_key(request_id: object) -> str:
    return f"approval_request:{request_id}"
