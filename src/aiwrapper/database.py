"""Async engine and session factory for job, RAG and event tables."""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from .config import settings
from .models import Base

logger = logging.getLogger(__name__)


def create_engine(url: str = settings.DATABASE_URL, echo: bool = settings.DATABASE_ECHO) -> AsyncEngine:
    # Worker processes fork; pooled connections must not cross the fork
    return create_async_engine(url, echo=echo, poolclass=NullPool)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_engine()
async_session = create_session_factory(engine)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create tables; the pgvector extension is attempted first."""
    if bind.dialect.name == "postgresql":
        try:
            async with bind.begin() as conn:
                await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        except Exception as e:
            # Retrieval needs pgvector; jobs and events do not
            logger.warning(f"[db] pgvector extension unavailable: {e}")

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[db] Tables ready", extra={"dialect": bind.dialect.name})
