"""Async SQLAlchemy engine, session factory and database client.

This module centralizes engine and session creation in the core layer so the
pipeline, the Temporal worker and the tests all build sessions the same way.
"""

from typing import Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from casework.core.config import settings
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def create_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    """Create an async engine for the given database URL.

    PostgreSQL engines get the configured connection pool. SQLite engines run
    every transaction as ``BEGIN IMMEDIATE`` so concurrent writers queue on
    the database lock instead of failing with a lock upgrade error.

    Args:
        url: Database URL (defaults to settings.database_url)
        echo: Enable SQL logging (defaults to settings.database_echo)

    Returns:
        AsyncEngine: Configured engine
    """
    url = url or settings.database_url
    echo = settings.database_echo if echo is None else echo

    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=echo, connect_args={"timeout": 30})

        @event.listens_for(engine.sync_engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_async_engine(
        url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=echo,
        future=True,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the async session factory used by repositories and services."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class DatabaseClient:
    """Schema management and health checks for a casework database."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def connect(self) -> None:
        """Check the database is reachable, raising if it is not."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            LOGGER.error("Database connection failed", exc_info=True, extra={"dialect": self.engine.dialect.name})
            raise
        LOGGER.info("Database connection successful", extra={"dialect": self.engine.dialect.name})

    async def disconnect(self) -> None:
        await self.engine.dispose()
        LOGGER.info("Database connection closed")

    async def create_tables(self) -> None:
        """Create the casework tables that do not exist yet."""
        # Models must be imported so they register on Base.metadata
        from casework.database import models  # noqa: F401

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            LOGGER.error(
                "Failed to create database tables",
                exc_info=True,
                extra={"error": str(e)}
            )
            raise
        LOGGER.info("Database tables created/verified successfully")

    async def drop_tables(self) -> None:
        """Drop every casework table. All data is lost."""
        from casework.database import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        LOGGER.warning("All database tables dropped")

    async def health_check(self) -> dict:
        """Report whether the database answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                value = await conn.scalar(text("SELECT 1"))
        except Exception as e:
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "dialect": self.engine.dialect.name, "error": str(e)}

        return {
            "status": "healthy" if value == 1 else "unhealthy",
            "dialect": self.engine.dialect.name,
        }
