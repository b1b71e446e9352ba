"""
Database layer — async SQLAlchemy 2.0 (aiosqlite by default, asyncpg in production).

Provides:
    • Engine factory that understands SQLite vs pooled server databases
    • Session factory used by the drill store and directory service
    • Declarative base for ORM entities
    • Table creation / engine disposal for the application lifespan

Usage:
    from drillalert.core.database import Base, async_session_factory

    async with async_session_factory() as session:
        result = await session.execute(select(Drill))
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from drillalert.core.config import settings

logger = logging.getLogger(__name__)


# ── ORM Base ──
class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


def build_engine(url: Optional[str] = None, **overrides: Any) -> AsyncEngine:
    """
    Create an async engine for ``url`` (defaults to settings.DATABASE_URL).

    Pool sizing only applies to server databases; SQLite picks its own pool.
    """
    url = url or settings.DATABASE_URL
    options: dict = {"echo": settings.DATABASE_ECHO, "future": True}
    if not url.startswith("sqlite"):
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
        options["pool_pre_ping"] = True
    options.update(overrides)
    return create_async_engine(url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# ── Application engine & session factory ──
engine = build_engine()
async_session_factory = build_session_factory(engine)


# ── Lifecycle ──
async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create all tables (idempotent)."""
    # Register ORM models on Base.metadata
    from drillalert.directory import models as _directory_models  # noqa: F401
    from drillalert.drills import models as _drill_models  # noqa: F401

    bind = bind or engine
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def ping_db(bind: Optional[AsyncEngine] = None) -> None:
    """Round-trip a trivial query; raises on failure."""
    bind = bind or engine
    async with bind.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def close_db(bind: Optional[AsyncEngine] = None) -> None:
    """Dispose engine connections."""
    bind = bind or engine
    await bind.dispose()
    logger.info("Database connections closed")
