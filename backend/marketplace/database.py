"""Database configuration and async SQLAlchemy setup."""
from typing import Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from marketplace.config import settings


def create_engine_from_settings() -> Optional[AsyncEngine]:
    """Build the async engine, or None while DATABASE_URL is unset."""
    if not settings.DATABASE_URL:
        return None
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
        future=True,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


# Create async engine; startup refuses to serve without one (Settings.ensure_required)
engine = create_engine_from_settings()

# Create async session factory
AsyncSessionLocal = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    future=True,
)

# Base class for models
Base = declarative_base()


async def get_db():
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        yield session
