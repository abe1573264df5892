"""
Database Persistence Layer - Core Engine.

============================================================
PURPOSE
============================================================
Async SQLAlchemy engine and session plumbing for the risk
assessment tables (risk_assessment_advice,
risk_assessment_config).

Requirements:
- SQLAlchemy 2.x async engine (asyncpg in production,
  aiosqlite for local runs and tests)
- Explicit transaction management
- Structured logging

============================================================
"""

import os
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, text
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


# =============================================================
# DECLARATIVE BASE
# =============================================================


class Base(DeclarativeBase):
    """Declarative base for all risk assessment ORM models."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


# =============================================================
# DATABASE ENGINE
# =============================================================

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./risk_assessment.db"

def get_database_url() -> str:
    """Get async database URL from environment."""
    url = os.getenv("DATABASE_URL")

    if url and url.startswith("postgresql://"):
        # Convert sync URL to async driver
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")

    return url


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> AsyncEngine:
    """
    Create an async SQLAlchemy engine.

    Pool arguments are ignored for SQLite, whose async dialect
    picks its own pool class.

    Args:
        database_url: Async URL; read from the environment if omitted
        pool_size: Number of connections to keep in pool
        max_overflow: Max connections beyond pool_size
        pool_timeout: Seconds to wait for available connection
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements

    Returns:
        AsyncEngine
    """
    url = database_url or get_database_url()

    logger.info(f"Creating database engine for: {url.split('@')[-1]}")

    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)

    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
        echo=echo,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to the given engine."""
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


async def verify_database_connection(engine: AsyncEngine) -> bool:
    """
    Verify database connection is working.

    Raises:
        DatabaseConnectionError if connection fails
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            logger.info("Database connection verified successfully")
            return True
    except (OperationalError, OSError) as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e


async def initialize_database(engine: AsyncEngine) -> None:
    """
    Create the risk assessment tables if they do not exist.

    Raises:
        DatabaseInitializationError if table creation fails
    """
    # Register models with Base
    from risk_assessment import models  # noqa: F401

    try:
        logger.info("Creating risk assessment tables...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Risk assessment tables ready")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabaseInitializationError(f"Table creation failed: {e}") from e


# =============================================================
# CUSTOM EXCEPTIONS
# =============================================================


class DatabasePersistenceError(Exception):
    """Raised when database persistence fails."""
    pass


class DatabaseConnectionError(DatabasePersistenceError):
    """Raised when database connection fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when database initialization fails."""
    pass


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "create_database_engine",
    "create_session_factory",
    "verify_database_connection",
    "initialize_database",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
