#!/usr/bin/env python3
"""
Create the Snapbook schema

Usage:
    python scripts/init_db.py          # create missing tables
    python scripts/init_db.py --drop   # drop every table first (destroys data)
"""
import argparse
import asyncio

from snapbook.config import get_settings
from snapbook.database import create_schema, engine
from snapbook.models import Base
from snapbook.utils.logging import get_logger, setup_logging

logger = get_logger("snapbook.init_db")


async def init_database(drop: bool = False) -> None:
    tables = [t.name for t in Base.metadata.sorted_tables]
    try:
        if drop:
            logger.warning("Dropping tables: %s", ", ".join(reversed(tables)))
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)

        logger.info("Creating tables: %s", ", ".join(tables))
        await create_schema()
    finally:
        await engine.dispose()

    print("✅ Database initialized successfully!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the Snapbook database schema")
    parser.add_argument("--drop", action="store_true", help="Drop all tables before creating them")
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    asyncio.run(init_database(args.drop))
