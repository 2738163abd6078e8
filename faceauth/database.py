"""
Database Connection and Session Management

This module handles database connectivity using SQLAlchemy's async engine.
PostgreSQL (asyncpg) in deployment, SQLite (aiosqlite) in tests.
"""
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
import logging

from faceauth.config import DB_POOL_SIZE, DB_MAX_OVERFLOW, DB_CREATE_TABLES

logger = logging.getLogger(__name__)

# Base class for ORM models
Base = declarative_base()


def create_engine(database_url: str) -> AsyncEngine:
    """Create the async engine; pool sizing only applies to server databases."""
    options = {
        "echo": False,  # Set to True for SQL debugging
        "pool_pre_ping": True,  # Enable connection health checks
    }
    if make_url(database_url).get_backend_name() != "sqlite":
        options["pool_size"] = DB_POOL_SIZE
        options["max_overflow"] = DB_MAX_OVERFLOW

    return create_async_engine(database_url, **options)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine, create_tables: bool = DB_CREATE_TABLES):
    """Verify connectivity and create missing tables."""
    # Register the ORM models on Base.metadata
    from faceauth import models  # noqa: F401

    try:
        async with engine.begin() as conn:
            # Test connection
            await conn.execute(text("SELECT 1"))
            if create_tables:
                await conn.run_sync(Base.metadata.create_all)
        logger.info("Database connection established successfully")
    except Exception as e:
        logger.error(f"Failed to connect to database: {e}")
        raise


async def close_db(engine: AsyncEngine):
    """Close database connection pool."""
    await engine.dispose()
    logger.info("Database connection pool closed")
