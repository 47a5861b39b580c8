"""
Database configuration and session management
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from tablebook.config import settings


class Base(DeclarativeBase):
    """Declarative base for all models"""


# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

# Create async session factory
SessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def create_worker_engine() -> AsyncEngine:
    """Engine for Celery tasks.

    Each task runs in its own event loop, so pooled connections cannot be
    shared between runs. Callers dispose the engine when the task finishes.
    """
    return create_async_engine(settings.database_url, poolclass=NullPool)


def worker_session_factory(worker_engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to a task's own engine"""
    return async_sessionmaker(
        bind=worker_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_db():
    """Dependency to get database session"""
    async with SessionLocal() as session:
        yield session
