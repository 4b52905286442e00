"""Async engine, session factory and the transactional scope used by every service call."""
from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from dindin.config import get_settings
from dindin.db import models


@lru_cache()
def get_engine() -> AsyncEngine:
    database = get_settings().database
    dsn = database.async_dsn
    # pool options only apply to the PostgreSQL pool
    options = {} if dsn.startswith("sqlite") else {"pool_pre_ping": True, "pool_size": 5}
    return create_async_engine(dsn, echo=database.echo, **options)


@lru_cache()
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=get_engine(),
        expire_on_commit=False,
        class_=AsyncSession,
    )


async def init_models(engine: AsyncEngine | None = None) -> None:
    """Create database tables based on the SQLAlchemy models."""

    engine = engine or get_engine()
    async with engine.begin() as connection:
        await connection.run_sync(models.Base.metadata.create_all)


@asynccontextmanager
async def session_scope(factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Provide a transactional scope around a series of operations."""

    session = factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


def get_session() -> "AsyncIterator[AsyncSession]":
    """Transactional scope bound to the configured database."""

    return session_scope(get_session_factory())


__all__ = ["get_engine", "get_session", "get_session_factory", "init_models", "session_scope"]
