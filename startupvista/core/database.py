"""
StartupVista Database Module
Async SQLAlchemy engine and sessions for the credential store and profiles.

SQLite (aiosqlite) in development and tests, PostgreSQL (asyncpg) in production.
The engine is created lazily from settings and torn down by close_db().
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from startupvista.core.config import Settings, get_settings


# Stable constraint names so Alembic batch migrations on SQLite can find them
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base for users, profiles, posts and interests."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


_engine: AsyncEngine | None = None
_sessions: async_sessionmaker[AsyncSession] | None = None


def _engine_options(settings: Settings) -> dict[str, Any]:
    if settings.database_url.startswith("sqlite"):
        # aiosqlite hands the connection to a worker thread
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            **_engine_options(settings),
        )
    return _engine


def _session_factory() -> async_sessionmaker[AsyncSession]:
    global _sessions
    if _sessions is None:
        _sessions = async_sessionmaker(
            bind=get_engine(),
            expire_on_commit=False,
            autoflush=False,
        )
    return _sessions


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    One unit of work: commit on clean exit, roll back if anything raises.
    For code outside a request (health checks, tests, maintenance).
    """
    async with _session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency. FastAPI caches it per request, so the authentication
    gate and the route handler share one session and one transaction.
    """
    async with get_db_session() as session:
        yield session


def _load_models() -> None:
    import startupvista.models.models  # noqa: F401


async def init_db() -> None:
    """Create any missing tables. Called from the app lifespan."""
    _load_models()
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db() -> None:
    """Drop every table. Tests and maintenance only."""
    _load_models()
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def close_db() -> None:
    """Dispose the pool; the next get_engine() call starts fresh."""
    global _engine, _sessions
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessions = None
