"""
Database connection management and session handling.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
    AsyncEngine,
)

from .config import get_settings
from .models.base import Base

logger = logging.getLogger(__name__)

# Global engine and session factory
engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    """SQLite only enforces ON DELETE CASCADE with this pragma set."""
    # Let SQLAlchemy emit BEGIN itself (see _begin_immediate)
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_immediate(connection) -> None:
    """Take the SQLite write lock at BEGIN so concurrent writers queue on the busy timeout."""
    connection.exec_driver_sql("BEGIN IMMEDIATE")


def create_database_engine(database_url: str | None = None) -> AsyncEngine:
    """Create and configure the database engine with connection pooling."""
    settings = get_settings()
    url = database_url or settings.database_url

    if url.startswith("sqlite"):
        sqlite_engine = create_async_engine(
            url,
            echo=settings.debug,
            connect_args={"timeout": 30},
        )
        event.listen(sqlite_engine.sync_engine, "connect", _configure_sqlite_connection)
        event.listen(sqlite_engine.sync_engine, "begin", _begin_immediate)
        return sqlite_engine

    return create_async_engine(
        url,
        # Connection pool configuration for concurrent access
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=settings.debug,
        connect_args={
            "server_settings": {
                "application_name": "seat_reservation",
            }
        }
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory for database sessions."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=True,
    )


async def init_database() -> None:
    """Initialize database connection and create tables."""
    global engine, async_session_factory

    logger.info("Initializing database connection...")

    engine = create_database_engine()
    async_session_factory = create_session_factory(engine)

    if get_settings().database_create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized successfully")


async def close_database() -> None:
    """Close database connections."""
    global engine

    if engine:
        logger.info("Closing database connections...")
        await engine.dispose()
        engine = None
        logger.info("Database connections closed")


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session with automatic cleanup.

    Usage:
        async with get_db_session() as session:
            result = await session.execute(query)
    """
    if async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Run the enclosed block as a single transaction.

    Everything flushed inside the block commits together or not at all; any
    exception escaping the block rolls the whole transaction back before it
    propagates. A transaction left open by earlier reads on the same session
    (for example the caller lookup of the auth dependency) is closed first.
    """
    if session.in_transaction():
        await session.commit()

    async with session.begin():
        yield session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for getting database sessions.

    Usage in FastAPI endpoints:
        @app.get("/endpoint")
        async def endpoint(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with get_db_session() as session:
        yield session
