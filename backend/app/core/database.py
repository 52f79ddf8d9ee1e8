"""Database configuration and session management."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from app.config import settings


def _engine_kwargs() -> dict:
    if settings.DATABASE_URL.startswith("sqlite"):
        return {"echo": settings.DB_ECHO}
    return {
        "echo": settings.DB_ECHO,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {
                "application_name": "tenant_hub_api",
                "statement_timeout": "30000",  # 30 second query timeout
            },
        },
    }


engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs())

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database session.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Commit everything written inside the block as one transaction.

    Any exception rolls the whole block back and is re-raised, so row writes
    and their audit entries are never committed separately.

    Usage::

        async with unit_of_work(db):
            db.add(grant)
            db.add(audit_entry)
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise


async def init_db() -> None:
    """Initialize database tables (use Alembic migrations in production)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
