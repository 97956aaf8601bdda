"""
Database session management.

One engine and session factory. Repositories open a transaction through
session_scope(), which commits on clean exit and rolls back on error; the
same scope serves API requests and Celery runs.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from learninglab.core.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

engine: AsyncEngine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,          # detect stale connections before use
    pool_recycle=3600,
    echo=settings.db_echo_sql,
)

# expire_on_commit=False keeps ORM objects usable after commit
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# ---------------------------------------------------------------------------
# Transactional scope
# ---------------------------------------------------------------------------

@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """One transaction; used by SQLDocumentRepository for every operation."""
    async with AsyncSessionLocal() as session:
        async with session.begin():
            yield session


# ---------------------------------------------------------------------------
# Health check helper
# ---------------------------------------------------------------------------

async def check_db_health() -> dict:
    """Ping the database; used by /ready."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        logger.error("DB health check failed: %s", exc)
        return {"status": "error", "detail": str(exc)}
