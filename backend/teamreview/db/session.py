"""
Database session management with async SQLAlchemy 2.0.

Sessions handed out here never commit on their own: every write goes through
the configured TransactionPolicy (see ``teamreview.db.transactions``), which
decides when to flush, commit or roll back.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from typing import AsyncGenerator, Optional

from teamreview.core.config import settings
from teamreview.core.logging import get_logger
from teamreview.db.immutability import register_immutability_listeners

logger = get_logger(__name__)

# Global engine and sessionmaker
engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create the async engine. Pool sizing only applies to server databases."""
    global engine

    url = make_url(database_url or settings.DATABASE_URL)
    options = {"echo": settings.DB_ECHO}
    if url.get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )

    engine = create_async_engine(url, **options)

    logger.info(
        "Database engine created",
        extra={
            "backend": url.get_backend_name(),
            "pool_size": options.get("pool_size"),
            "max_overflow": options.get("max_overflow"),
        },
    )
    return engine


def create_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Create the async sessionmaker bound to the global engine."""
    global async_session_maker

    if engine is None:
        create_engine()

    # Rows stay loaded after a commit; the best-effort policy commits
    # between steps of one operation.
    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    logger.info("Sessionmaker created")
    return async_session_maker


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the global sessionmaker, creating it on first use."""
    if async_session_maker is None:
        create_sessionmaker()
    return async_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting a request-scoped database session.
    Work the transaction policy did not commit is rolled back on exit.
    """
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()
            await session.close()


async def init_db() -> None:
    """Create the engine and sessionmaker and install the audit-trail listeners."""
    register_immutability_listeners()
    get_session_factory()
    logger.info(
        "Database initialized",
        extra={"use_transactions": settings.USE_TRANSACTIONS},
    )


async def close_db() -> None:
    """Dispose the engine and forget the sessionmaker."""
    global engine, async_session_maker

    if engine is not None:
        await engine.dispose()
        logger.info("Database connections closed")
    engine = None
    async_session_maker = None
