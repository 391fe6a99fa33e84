import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from scheduler.core.config import settings

logger = structlog.get_logger(__name__)

Base = declarative_base()


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine for a database URL.

    In-memory SQLite lives on a single connection, so every session shares
    one StaticPool connection. Server databases get a checked pool.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        return create_async_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(url, pool_pre_ping=True, pool_recycle=300)


def build_session_factory(
    bind: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    # Committed appointments are rendered after the commit without a reload
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = build_session_factory(engine)


async def init_db():
    """Check the connection and create missing tables when enabled."""
    # Register models on Base.metadata
    from scheduler import models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if settings.AUTO_CREATE_TABLES:
                await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error(
            "Could not reach the appointment store",
            backend=engine.url.get_backend_name(),
            exc_info=e,
        )
        raise

    logger.info(
        "Appointment store ready",
        backend=engine.url.get_backend_name(),
        auto_create_tables=settings.AUTO_CREATE_TABLES,
    )


async def close_db():
    await engine.dispose()


async def get_db():
    """Yield a session per request; roll back whatever the request left open."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            logger.warning("Rolled back appointment session after error")
            raise
