"""Async database engine and session management."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import get_settings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the process-wide async engine and session factory."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    def initialize(self, database_url: Optional[str] = None) -> None:
        """Create the engine. Safe to call again with a different URL."""
        settings = get_settings()
        url = database_url or settings.database_url

        self.engine = create_async_engine(
            url,
            echo=settings.database_echo,
            pool_pre_ping=True,
        )
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.debug("Database engine initialized for %s", self.engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        """Dispose of the engine and its connection pool."""
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self.session_factory = None


db_manager = DatabaseManager()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the shared session factory, initializing the engine on first use."""
    if db_manager.session_factory is None:
        db_manager.initialize()
    return db_manager.session_factory

