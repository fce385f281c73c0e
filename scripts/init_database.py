#!/usr/bin/env python3
"""Initialize database tables and default settings."""

import asyncio

from loguru import logger

from mlm_ledger.config.database import async_engine, async_session_maker
from mlm_ledger.config.logging import setup_logging
from mlm_ledger.models import Base
from mlm_ledger.services.settings_service import SettingsService


async def init_database() -> None:
    """Create all database tables and seed default settings."""
    logger.info("Connecting to database...")

    async with async_engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    async with async_session_maker() as session:
        created = await SettingsService(session).create_defaults()
    logger.info(f"Default settings created: {created}")

    await async_engine.dispose()
    logger.success("Database initialized successfully!")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
