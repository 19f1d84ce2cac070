"""
Database connection and pool management
"""

import asyncpg
import logging
from typing import Optional

from reactive_demo.config.settings import Settings
from reactive_demo.utils.errors import PersistenceError

logger = logging.getLogger(__name__)

# Global database pool
db_pool: Optional[asyncpg.Pool] = None

async def create_pool(settings: Settings) -> asyncpg.Pool:
    """Create a connection pool and check that the database answers"""
    try:
        pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
            statement_cache_size=0  # pgbouncer compatibility
        )
    except (asyncpg.PostgresError, OSError) as e:
        raise PersistenceError(f"Could not connect to database: {e}", operation="connect") from e

    # Test connection
    try:
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
    except (asyncpg.PostgresError, OSError) as e:
        await pool.close()
        raise PersistenceError(f"Database connectivity check failed: {e}", operation="connect") from e

    return pool

async def init_database(settings: Settings) -> asyncpg.Pool:
    """Initialize the global database connection pool"""
    global db_pool
    db_pool = await create_pool(settings)
    logger.info("Database initialized successfully")
    return db_pool


async def close_database():
    """Close database connection pool"""
    global db_pool
    if db_pool:
        await db_pool.close()
        db_pool = None
    logger.info("Database connections closed")

def get_db_pool() -> Optional[asyncpg.Pool]:
    """Get the database pool instance"""
    return db_pool
