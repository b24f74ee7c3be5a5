from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from makercost.core.config import settings

Base = declarative_base()

_async_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker] = None


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases"""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo)
    return create_async_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        echo=echo
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


def get_async_engine() -> AsyncEngine:
    """Engine for the configured DATABASE_URL, created on first use"""
    global _async_engine
    if _async_engine is None:
        _async_engine = create_engine_for_url(settings.async_database_url, echo=settings.DATABASE_ECHO)
    return _async_engine


def get_session_factory() -> async_sessionmaker:
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = create_session_factory(get_async_engine())
    return _async_session_factory


async def init_models(engine: Optional[AsyncEngine] = None) -> None:
    """Create all record tables that do not exist yet"""
    # Registers the tables on Base.metadata
    from makercost.models import records  # noqa: F401

    engine = engine or get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

