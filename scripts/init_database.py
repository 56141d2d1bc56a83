#!/usr/bin/env python3
"""
Initialize database tables and default configuration.

Creates every table, then seeds the default 7-rank ladder and a paused
1%/day, 30-day ROI plan when none exist yet.

Usage:
    python scripts/init_database.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from payout_engine.config.constants import default_rank_ladder
from payout_engine.config.database import async_engine, async_session_maker
from payout_engine.models import Base
from payout_engine.models.enums import ROIStatus
from payout_engine.services.settings_service import SettingsService

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database() -> None:
    """Create all database tables and seed defaults."""
    logger.info("Connecting to database...")

    async with async_engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    async with async_session_maker() as session:
        service = SettingsService(session)

        if not await service.get_rank_rules():
            await service.set_rank_rules(default_rank_ladder())
            logger.info("Seeded default rank ladder")

        if await service.get_roi_settings() is None:
            await service.save_roi_settings(
                "daily", 1, 30, status=ROIStatus.PAUSED
            )
            logger.info("Seeded paused ROI settings (1% daily, 30 days)")

    await async_engine.dispose()
    logger.success("Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_database())
