"""
This module contains the database session.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.config import get_settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> AsyncEngine:
    """
    Create an async engine for the database.

    Pool and timeout options only apply to PostgreSQL (asyncpg); other
    dialects get the driver defaults.
    """
    if database_url.startswith("postgresql"):
        return create_async_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=1800,
            connect_args={
                "command_timeout": 60,
                "server_settings": {
                    "statement_timeout": "60000",  # 60 seconds
                    "idle_in_transaction_session_timeout": "60000"
                }
            }
        )
    return create_async_engine(database_url)


settings = get_settings()

try:
    engine = build_engine(settings.database_url)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
except Exception as e:
    logger.error("Failed to create database engine", exc_info=e)
    raise
