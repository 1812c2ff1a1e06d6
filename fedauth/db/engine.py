"""Process-wide async engine shared by the registry and vault apps."""

from collections.abc import AsyncIterator

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fedauth.core.settings import DatabaseSettings

logger = structlog.get_logger(__name__)


class _EngineHolder:
    engine: AsyncEngine | None = None
    factory: async_sessionmaker[AsyncSession] | None = None


_holder = _EngineHolder()


def build_engine(db: DatabaseSettings) -> AsyncEngine:
    """SQLite URLs (tests, local runs) keep SQLAlchemy's default pool."""
    url = db.async_url
    if url.startswith("sqlite"):
        return create_async_engine(url)
    return create_async_engine(
        url,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=True,
    )


def _session_factory() -> async_sessionmaker[AsyncSession]:
    if _holder.factory is None:
        _holder.engine = build_engine(DatabaseSettings())
        _holder.factory = async_sessionmaker(_holder.engine, expire_on_commit=False)
        logger.info("db_engine_created", dialect=_holder.engine.dialect.name)
    return _holder.factory


async def dispose_engine() -> None:
    """Close pooled connections; the next request builds a fresh engine."""
    if _holder.engine is not None:
        await _holder.engine.dispose()
    _holder.engine = None
    _holder.factory = None


async def get_session() -> AsyncIterator[AsyncSession]:
    """Request-scoped unit of work.

    Commits when the handler returns normally and rolls back when it raises,
    including FedAuthError subclasses rendered by the exception handler.
    """
    async with _session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
