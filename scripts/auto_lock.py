#!/usr/bin/env python3
"""
Unattended day lock for every active sprint

Meant to be run from cron at the end of each working day. Sprints that are
closed, outside their window or already locked are skipped silently.

Usage:
    python scripts/auto_lock.py                   # lock today (configured timezone)
    python scripts/auto_lock.py --date 2025-01-05 # lock a specific day
"""
import argparse
import asyncio
from datetime import date
from typing import Optional

from snapbook.config import get_settings
from snapbook.core.clock import SystemClock
from snapbook.database import async_session, engine
from snapbook.repositories import SprintRepository
from snapbook.services.snap_service import SnapService
from snapbook.utils.logging import get_logger, setup_logging

logger = get_logger("snapbook.auto_lock")


async def auto_lock(day: Optional[date] = None) -> int:
    """Lock ``day`` for every active sprint; returns the number of new locks."""
    settings = get_settings()
    clock = SystemClock(settings.timezone)
    day = day or clock.today()

    async with async_session() as session:
        sprint_ids = [s.id for s in await SprintRepository(session).list_active()]

    locked = 0
    for sprint_id in sprint_ids:
        # One session per sprint so a failure leaves the other sprints untouched
        async with async_session() as session:
            service = SnapService(session, clock=clock, settings=settings)
            try:
                lock = await service.auto_lock_day(sprint_id, day)
            except Exception:
                logger.error("Auto-lock failed for sprint %d on %s", sprint_id, day, exc_info=True)
                continue
            if lock is not None:
                locked += 1

    logger.info("Auto-lock for %s: %d of %d active sprints locked", day, locked, len(sprint_ids))
    return locked


async def main(day: Optional[date]) -> None:
    try:
        await auto_lock(day)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Auto-lock the standup day for all active sprints")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Day to lock (YYYY-MM-DD)")
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    asyncio.run(main(args.date))
