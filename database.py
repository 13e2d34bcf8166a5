import asyncpg
from typing import Optional
import logging

from config import get_settings

logger = logging.getLogger(__name__)


class Database:
    """Database connection manager for usage telemetry."""

    def __init__(self):
        self.pool: Optional[asyncpg.Pool] = None

    @property
    def is_connected(self) -> bool:
        return self.pool is not None

    async def connect(self):
        """Create database connection pool."""
        settings = get_settings()
        if not settings.database_url:
            raise ValueError("DATABASE_URL is not configured")
        self.pool = await asyncpg.create_pool(settings.database_url)
        logger.info("Database connected")

    async def disconnect(self):
        """Close database connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("Database disconnected")


# Singleton instance
_database: Optional[Database] = None


def get_database() -> Database:
    """Get the database singleton."""
    global _database
    if _database is None:
        _database = Database()
    return _database
