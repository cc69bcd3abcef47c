"""
Database connection and session management.
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from governance.config import settings

# Create SQLAlchemy engine
engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,  # Verify connections before using
    echo=settings.log_level == "DEBUG"
)

# Session factory
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)

# Base class for ORM models
Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Dependency for FastAPI routes to get database session.

    Usage:
        @app.get("/items")
        async def read_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with SessionLocal() as db:
        yield db
