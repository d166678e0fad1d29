"""
Initialize the database.

Run this script once to create the tables:
    python init_db.py
"""

import asyncio
import logging

from zhe.config import settings
from zhe.core.logging_config import configure_logging
from zhe.database import engine, init_models

logger = logging.getLogger("zhe.init_db")


async def init_database():
    """Create all database tables"""
    logger.info("Creating database tables in %s", settings.DATABASE_URL)
    await init_models(engine)
    await engine.dispose()
    logger.info("Database tables created successfully")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(init_database())
