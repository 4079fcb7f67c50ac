"""
Пересчёт агрегатов заведения (average_rating, review_count) по отзывам
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_shared.models import Establishment, Review

logger = logging.getLogger(__name__)

RATING_PRECISION = Decimal("0.01")


def round_rating(value) -> float:
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(RATING_PRECISION, rounding=ROUND_HALF_UP))


async def update_establishment_rating(db: AsyncSession, establishment_id: UUID) -> dict:
    """Пересчитывает рейтинг и число отзывов по всем неудалённым отзывам.

    Видимость отзыва на агрегат не влияет, учитывается только is_deleted.
    Изменения не коммитятся: пересчёт идёт в транзакции вызывающего кода.
    """
    try:
        result = await db.execute(
            select(func.avg(Review.rating), func.count(Review.id))
            .where(
                Review.establishment_id == establishment_id,
                Review.is_deleted.is_(False)
            )
        )
        avg_value, review_count = result.one()

        # Как DECIMAL(3,2): половины округляются вверх, 0.0 если отзывов нет
        avg_rating = round_rating(avg_value)
        review_count = int(review_count or 0)

        await db.execute(
            update(Establishment)
            .where(Establishment.id == establishment_id)
            .values(average_rating=avg_rating, review_count=review_count)
            .execution_options(synchronize_session=False)
        )

        logger.info(
            f"Обновлен рейтинг заведения {establishment_id}: {avg_rating} "
            f"(на основе {review_count} отзывов)"
        )
        return {
            "establishment_id": establishment_id,
            "average_rating": avg_rating,
            "review_count": review_count
        }

    except Exception as e:
        logger.error(f"Ошибка обновления рейтинга заведения {establishment_id}: {e}")
        raise


async def update_all_establishment_ratings(db: AsyncSession) -> int:
    """Обновляет рейтинги всех заведений и коммитит результат"""
    result = await db.execute(select(Establishment.id))
    establishment_ids = result.scalars().all()

    updated_count = 0
    for establishment_id in establishment_ids:
        await update_establishment_rating(db, establishment_id)
        updated_count += 1

    await db.commit()
    logger.info(f"Обновлены рейтинги для {updated_count} заведений")
    return updated_count
