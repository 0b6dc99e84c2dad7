"""Async database engine and session factory."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from catalog_pipeline.config import ConfigurationError, settings

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    """
    Create the engine on first use.

    Raises:
        ConfigurationError: If DATABASE_URL is not set
    """
    global _engine
    if _engine is None:
        if not settings.database_url:
            raise ConfigurationError(["DATABASE_URL"])
        _engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    return _engine


def AsyncSessionLocal() -> AsyncSession:
    """Open a new session bound to the configured engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory()


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
