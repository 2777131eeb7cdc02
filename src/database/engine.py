"""
Database engine configuration for Pump Monitor

Async SQLAlchemy 2.0 setup with connection pooling
"""

from typing import AsyncGenerator

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)

from config.config import DATABASE_URL, ENVIRONMENT
from src.database.models import Base


# Global engine and session maker
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Create and configure async database engine

    Returns:
        Configured AsyncEngine instance
    """
    global engine

    if engine is None:
        is_production = ENVIRONMENT == "production"
        options = {
            "pool_pre_ping": True,  # Verify connections before using
            "echo": False,  # Don't spam SQL queries
        }

        if DATABASE_URL.startswith("postgresql+asyncpg"):
            options.update(
                pool_size=10 if is_production else 5,
                max_overflow=20 if is_production else 10,
                pool_recycle=3600,  # Recycle connections every hour
                connect_args={
                    "statement_cache_size": 0,
                    "server_settings": {"application_name": "pump_monitor"},
                },
            )

        engine = create_async_engine(DATABASE_URL, **options)

        logger.info(f"Database engine created - Environment: {ENVIRONMENT}")

    return engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """
    Create async session maker

    Returns:
        Configured async_sessionmaker instance
    """
    global AsyncSessionLocal

    if AsyncSessionLocal is None:
        AsyncSessionLocal = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,  # Important for async!
            autoflush=False,
        )

        logger.info("Session maker created")

    return AsyncSessionLocal


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a database session, rolling back on error

    Yields:
        AsyncSession instance
    """
    session_maker = get_session_maker()
    async with session_maker() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Session error: {e}")
            raise


async def init_db() -> None:
    """
    Initialize database - create all tables

    WARNING: This creates tables if they don't exist.
    For production, use Alembic migrations instead.
    """
    eng = get_engine()

    logger.info("Creating database tables...")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created successfully")


async def dispose_engine() -> None:
    """
    Dispose database engine and close all connections

    Call this on application shutdown
    """
    global engine, AsyncSessionLocal

    if engine is not None:
        await engine.dispose()
        logger.info("Database engine disposed")
        engine = None
        AsyncSessionLocal = None


async def check_connection(session_maker: async_sessionmaker[AsyncSession] | None = None) -> None:
    """
    Verify the database is reachable and the schema is present

    Raises:
        SQLAlchemyError: if the database cannot be queried
    """
    session_maker = session_maker or get_session_maker()
    async with session_maker() as session:
        await session.execute(text("SELECT 1"))
        count = await session.scalar(text("SELECT COUNT(*) FROM monitored_tokens"))

    logger.info(f"Database connection check: OK ({count} monitored tokens)")
