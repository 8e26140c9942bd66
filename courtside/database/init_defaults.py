#!/usr/bin/env python3
"""
Initialize default database values.
This script is run on startup to seed the ranking categories and their
promotion thresholds.
"""

import asyncio
import logging

from sqlalchemy import select

from courtside.database import db
from courtside.database.models import Category
from courtside.utils.constants import DEFAULT_CATEGORIES, DEFAULT_PROMOTION_THRESHOLDS

logger = logging.getLogger(__name__)


async def init_defaults():
    """Seed categories. Existing rows keep any threshold an admin has changed."""
    logger.info("Initializing default database values...")

    async with db.AsyncSessionLocal() as session:
        result = await session.execute(select(Category))
        existing = {c.sort_order: c for c in result.scalars().all()}

        created = 0
        for name, sort_order in DEFAULT_CATEGORIES:
            if sort_order in existing:
                continue
            session.add(
                Category(
                    name=name,
                    sort_order=sort_order,
                    promotion_threshold=DEFAULT_PROMOTION_THRESHOLDS.get(sort_order),
                )
            )
            created += 1

        await session.commit()

    if created:
        logger.info(f"✓ Seeded {created} categories")
    else:
        logger.info("✓ Categories already present")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_defaults())
