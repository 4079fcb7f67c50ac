"""
Публичные отзывы: создание, правка и удаление автором, списки, ответы партнёра
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_shared.models import Establishment, EstablishmentStatus, Review, User
from catalog_shared.models.base import utcnow

from ..errors import AppError
from ..schemas.review import ReviewCreate, ReviewUpdate
from ..utils.pagination import PageParams
from ..utils.rating_updater import update_establishment_rating
from .cache import ReviewRateLimiter

logger = logging.getLogger(__name__)


class ReviewService:
    def __init__(self, db: AsyncSession, limiter: ReviewRateLimiter):
        self.db = db
        self.limiter = limiter

    async def _active_establishment_or_404(self, establishment_id: UUID) -> Establishment:
        result = await self.db.execute(
            select(Establishment).where(
                Establishment.id == establishment_id,
                Establishment.status == EstablishmentStatus.ACTIVE.value,
            )
        )
        establishment = result.scalar_one_or_none()
        if establishment is None:
            raise AppError("Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND")
        return establishment

    async def _live_review_or_404(self, review_id: UUID) -> Review:
        result = await self.db.execute(
            select(Review).where(Review.id == review_id, Review.is_deleted.is_(False))
        )
        review = result.scalar_one_or_none()
        if review is None:
            raise AppError("Review not found", 404, "REVIEW_NOT_FOUND")
        return review

    async def create(self, user: User, data: ReviewCreate) -> Review:
        """Создать отзыв и пересчитать агрегаты заведения"""
        await self.limiter.check(user.id)
        await self._active_establishment_or_404(data.establishment_id)

        existing = await self.db.execute(
            select(Review.id).where(
                Review.user_id == user.id,
                Review.establishment_id == data.establishment_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise AppError(
                "You have already reviewed this establishment",
                409,
                "DUPLICATE_REVIEW",
            )

        review = Review(
            user_id=user.id,
            establishment_id=data.establishment_id,
            rating=data.rating,
            content=data.content,
        )

        try:
            self.db.add(review)
            await self.db.flush()
            await update_establishment_rating(self.db, data.establishment_id)
            await self.db.commit()
            await self.db.refresh(review)
        except IntegrityError:
            await self.db.rollback()
            raise AppError(
                "You have already reviewed this establishment",
                409,
                "DUPLICATE_REVIEW",
            )
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error creating review: {e}")
            raise AppError("Failed to create review", 500, "REVIEW_CREATE_FAILED")

        await self.limiter.hit(user.id)

        logger.info(
            f"Review created: user={user.id}, establishment={data.establishment_id}, rating={data.rating}"
        )
        return review

    async def list_for_establishment(
        self,
        establishment_id: UUID,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Tuple[Review, Optional[str]]], dict]:
        """Только видимые и неудалённые отзывы"""
        await self._active_establishment_or_404(establishment_id)
        params = PageParams.clamp(page, per_page)

        conditions = (
            Review.establishment_id == establishment_id,
            Review.is_visible.is_(True),
            Review.is_deleted.is_(False),
        )
        total = (await self.db.execute(
            select(func.count(Review.id)).where(*conditions)
        )).scalar_one()

        result = await self.db.execute(
            select(Review, User.name)
            .join(User, User.id == Review.user_id)
            .where(*conditions)
            .order_by(Review.created_at.desc(), Review.id)
            .offset(params.offset)
            .limit(params.per_page)
        )
        return [tuple(row) for row in result.all()], params.meta(total)

    async def get_public(self, review_id: UUID) -> Tuple[Review, Optional[str]]:
        """Отзыв по id вместе с именем автора; скрытые и удалённые не отдаются"""
        result = await self.db.execute(
            select(Review, User.name)
            .join(User, User.id == Review.user_id)
            .where(
                Review.id == review_id,
                Review.is_visible.is_(True),
                Review.is_deleted.is_(False),
            )
        )
        row = result.one_or_none()
        if row is None:
            raise AppError("Review not found", 404, "REVIEW_NOT_FOUND")
        return tuple(row)

    async def list_for_user(
        self,
        user_id: UUID,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Tuple[Review, str, str]], dict]:
        """Отзывы пользователя с названием и городом заведения"""
        found = (await self.db.execute(select(User.id).where(User.id == user_id))).scalar_one_or_none()
        if found is None:
            raise AppError("User not found", 404, "USER_NOT_FOUND")

        params = PageParams.clamp(page, per_page)
        conditions = (
            Review.user_id == user_id,
            Review.is_visible.is_(True),
            Review.is_deleted.is_(False),
        )
        total = (await self.db.execute(
            select(func.count(Review.id)).where(*conditions)
        )).scalar_one()

        result = await self.db.execute(
            select(Review, Establishment.name, Establishment.city)
            .join(Establishment, Establishment.id == Review.establishment_id)
            .where(*conditions)
            .order_by(Review.created_at.desc(), Review.id)
            .offset(params.offset)
            .limit(params.per_page)
        )
        return [tuple(row) for row in result.all()], params.meta(total)

    async def quota(self, user: User) -> dict:
        return await self.limiter.quota(user.id)

    async def update_own(self, user: User, review_id: UUID, data: ReviewUpdate) -> Review:
        """Правка собственного отзыва; при смене оценки агрегаты пересчитываются"""
        updates = data.model_dump(exclude_none=True)
        if not updates:
            raise AppError(
                "At least one field (rating or content) must be provided for update",
                400,
                "NO_UPDATE_FIELDS",
            )

        review = await self._live_review_or_404(review_id)
        if review.user_id != user.id:
            raise AppError(
                "You can only modify your own reviews",
                403,
                "UNAUTHORIZED_REVIEW_MODIFICATION",
            )

        rating_changed = "rating" in updates and updates["rating"] != review.rating
        old_rating = review.rating

        try:
            for field, value in updates.items():
                setattr(review, field, value)
            review.is_edited = True
            await self.db.flush()
            if rating_changed:
                await update_establishment_rating(self.db, review.establishment_id)
            await self.db.commit()
            await self.db.refresh(review)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error updating review {review_id}: {e}")
            raise AppError("Failed to update review", 500, "REVIEW_UPDATE_FAILED")

        if rating_changed:
            logger.info(f"Review {review.id} rating changed {old_rating} -> {review.rating}, aggregates updated")
        logger.info(f"Review {review.id} updated by author {user.id}: {sorted(updates)}")
        return review

    async def delete_own(self, user: User, review_id: UUID) -> Review:
        """Мягкое удаление собственного отзыва"""
        review = await self._live_review_or_404(review_id)
        if review.user_id != user.id:
            raise AppError(
                "You can only delete your own reviews",
                403,
                "UNAUTHORIZED_REVIEW_DELETION",
            )

        try:
            review.is_deleted = True
            await self.db.flush()
            await update_establishment_rating(self.db, review.establishment_id)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error deleting review {review_id}: {e}")
            raise AppError("Failed to delete review", 500, "REVIEW_DELETE_FAILED")

        logger.info(f"Review {review.id} deleted by author {user.id}")
        return review

    async def _owned_by_partner(self, partner: User, review_id: UUID) -> Review:
        review = await self._live_review_or_404(review_id)
        owner_id = (await self.db.execute(
            select(Establishment.partner_id).where(Establishment.id == review.establishment_id)
        )).scalar_one_or_none()
        if owner_id != partner.id:
            raise AppError(
                "Only the establishment owner can respond to its reviews",
                403,
                "UNAUTHORIZED_PARTNER_RESPONSE",
            )
        return review

    async def add_partner_response(self, partner: User, review_id: UUID, text: str) -> Review:
        review = await self._owned_by_partner(partner, review_id)

        review.partner_response = text
        review.partner_response_at = utcnow()
        review.partner_responder_id = partner.id
        await self.db.commit()
        await self.db.refresh(review)

        logger.info(f"Partner {partner.id} responded to review {review.id}")
        return review

    async def delete_partner_response(self, partner: User, review_id: UUID) -> Review:
        review = await self._owned_by_partner(partner, review_id)
        if not review.partner_response:
            raise AppError("Partner response not found", 404, "RESPONSE_NOT_FOUND")

        review.partner_response = None
        review.partner_response_at = None
        review.partner_responder_id = None
        await self.db.commit()
        await self.db.refresh(review)

        logger.info(f"Partner {partner.id} removed response from review {review.id}")
        return review
