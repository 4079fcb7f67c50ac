"""
Пересчёт average_rating/review_count для всех заведений.

Запускать после массовой загрузки отзывов:
    python -m scripts.recalculate_ratings
"""

import asyncio
import logging

from catalog_api.database import AsyncSessionLocal, engine
from catalog_api.utils.rating_updater import update_all_establishment_ratings
from catalog_shared.config import config

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


async def main() -> int:
    try:
        async with AsyncSessionLocal() as db:
            updated = await update_all_establishment_ratings(db)
    finally:
        await engine.dispose()
    logger.info(f"Готово: обновлено заведений - {updated}")
    return updated


if __name__ == "__main__":
    asyncio.run(main())
