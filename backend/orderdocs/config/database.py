"""
Database configuration and connection management.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker

from ..models.database import Base
from .settings import DatabaseSettings


logger = logging.getLogger(__name__)

SLOW_QUERY_SECONDS = 0.1


def _attach_listeners(engine: AsyncEngine, is_sqlite: bool) -> None:
    sync_engine = engine.sync_engine

    if is_sqlite:
        @event.listens_for(sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Enforce FK cascades on SQLite (off by default)."""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @event.listens_for(sync_engine, "before_cursor_execute")
    def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._query_start_time = time.time()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        """Log slow queries for performance monitoring."""
        total = time.time() - context._query_start_time
        if total > SLOW_QUERY_SECONDS:
            logger.warning("Slow query detected: %.3fs - %s...", total, statement[:100])


class Database:
    """Async engine + session factory owned by the application context."""

    def __init__(self, url: str, echo: bool = False, pool_size: Optional[int] = None):
        self.url = url
        self.is_sqlite = url.startswith("sqlite")
        if self.is_sqlite:
            self.engine = create_async_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )
        else:
            self.engine = create_async_engine(
                url,
                echo=echo,
                pool_size=pool_size or 10,
                pool_pre_ping=True,
            )
        _attach_listeners(self.engine, self.is_sqlite)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "Database":
        return cls(settings.url, echo=settings.echo, pool_size=settings.pool_size)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get async database session context manager.

        Usage:
            async with database.session() as db:
                db.add(row)
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create all database tables."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error("Failed to create database tables: %s", e)
            raise

    async def drop_tables(self) -> None:
        """Drop all database tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database tables dropped successfully")

    async def check_connection(self) -> bool:
        """Check if the database answers a trivial select."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database connection check failed: %s", e)
            return False

    async def health_check(self) -> dict:
        """Database health summary for readiness probes."""
        connection_ok = await self.check_connection()
        return {
            "status": "healthy" if connection_ok else "unhealthy",
            "connection": connection_ok,
            # Hide credentials
            "database_url": self.url.split("@")[-1],
        }

    async def dispose(self) -> None:
        await self.engine.dispose()


__all__ = ["Database"]
