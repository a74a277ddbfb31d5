"""
Database connection management for topic graphs.

Provides an async engine and transactional sessions using SQLAlchemy's
asyncio extension. PostgreSQL (asyncpg) is the production target; SQLite
(aiosqlite) is supported for local runs and tests.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from ..common.config import load_settings, normalize_database_url
from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite leaves foreign keys (and therefore ON DELETE CASCADE) off by default
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """
    Manages database connections and sessions.

    Each session is one transaction: it commits when the block exits
    normally and rolls back when it raises.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        pool_size: int = 10,
        echo: bool = False,
    ):
        """
        Initialize database manager.

        Args:
            database_url: Async database URL (defaults to configured settings)
            pool_size: Connection pool size (ignored for SQLite)
            echo: Enable SQL logging
        """
        self.database_url = normalize_database_url(database_url or load_settings().database_url)
        self.pool_size = pool_size
        self.echo = echo
        self._engine = None
        self._session_factory = None
        self._initialized = False

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    async def initialize(self) -> None:
        """Initialize database engine and create tables."""
        if self._initialized:
            return

        logger.info("Initializing database connection...")
        logger.info("Database URL: %s", self._mask_password(self.database_url))

        if self.is_sqlite:
            self._engine = create_async_engine(
                self.database_url,
                echo=self.echo,
                poolclass=NullPool,
            )
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self._engine = create_async_engine(
                self.database_url,
                echo=self.echo,
                pool_size=self.pool_size,
                max_overflow=self.pool_size * 2,
                pool_pre_ping=True,
            )

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created")

        self._initialized = True
        logger.info("Database initialization complete")

    async def close(self) -> None:
        """Close database connections."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._initialized = False
            logger.info("Database connections closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get an async database session wrapped in a transaction.

        Usage:
            async with db_manager.session() as session:
                result = await session.execute(query)
        """
        if not self._initialized:
            await self.initialize()

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def health_check(self) -> bool:
        """Check if database connection is healthy."""
        try:
            async with self.session() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            logger.error("Database health check failed: %s", e)
            return False

    @staticmethod
    def _mask_password(url: str) -> str:
        """Mask password in database URL for logging."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")

            creds = url[protocol_end:at_pos]
            if ":" in creds:
                colon_pos = creds.index(":")
                user = creds[:colon_pos]
                return f"{url[:protocol_end]}{user}:****{url[at_pos:]}"

        return url
