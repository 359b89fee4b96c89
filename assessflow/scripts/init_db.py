#!/usr/bin/env python3
"""
Database initialization script.

Creates every table on the configured database and optionally loads the demo
tenant. Production databases should be migrated with ``alembic upgrade head``
instead.

Usage:
    python -m assessflow.scripts.init_db [--seed]
"""

import argparse
import asyncio
import logging
import sys

from assessflow.config import settings
from assessflow.database.init_db import close_database, create_all, get_session_factory, initialize_database
from assessflow.database.seed import seed_demo_content

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def async_main(seed: bool) -> None:
    """Initialize the database."""
    try:
        engine = await initialize_database(
            database_url=settings.DATABASE_URL,
            echo=settings.SQL_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT
        )
        await create_all(engine)

        if seed:
            async with get_session_factory()() as session:
                async with session.begin():
                    tenant = await seed_demo_content(session)
            logger.info(f"Demo content available under tenant {tenant.id}")

        logger.info("Database initialized successfully")

    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        sys.exit(1)
    finally:
        await close_database()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the AssessFlow schema")
    parser.add_argument("--seed", action="store_true", help="load the demo tenant and content")
    args = parser.parse_args()
    asyncio.run(async_main(args.seed))


if __name__ == "__main__":
    main()
