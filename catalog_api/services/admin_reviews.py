"""
Отзывы в админке и журнал действий администраторов
"""

import logging
from datetime import datetime
from typing import Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_shared.models import AuditAction, AuditLog, EntityType, Establishment, Review, User

from ..errors import AppError
from ..utils.pagination import PageParams
from ..utils.rating_updater import update_establishment_rating
from .audit import AuditEntry, AuditLogger, RequestMeta

logger = logging.getLogger(__name__)

REVIEW_STATUSES = ("visible", "hidden", "deleted")
REVIEW_SORTS = {
    "newest": Review.created_at.desc(),
    "oldest": Review.created_at.asc(),
    "rating_high": Review.rating.desc(),
    "rating_low": Review.rating.asc(),
}

AUDIT_SUMMARIES = {
    (AuditAction.MODERATE_APPROVE.value, EntityType.ESTABLISHMENT.value): "Одобрено заведение",
    (AuditAction.MODERATE_REJECT.value, EntityType.ESTABLISHMENT.value): "Отклонено заведение",
    (AuditAction.SUSPEND_ESTABLISHMENT.value, EntityType.ESTABLISHMENT.value): "Приостановлено заведение",
    (AuditAction.UNSUSPEND_ESTABLISHMENT.value, EntityType.ESTABLISHMENT.value): "Возобновлено заведение",
    (AuditAction.ARCHIVE_ESTABLISHMENT.value, EntityType.ESTABLISHMENT.value): "Архивировано заведение",
    (AuditAction.ADMIN_UPDATE_COORDINATES.value, EntityType.ESTABLISHMENT.value): "Исправлены координаты заведения",
    (AuditAction.REVIEW_HIDE.value, EntityType.REVIEW.value): "Скрыт отзыв",
    (AuditAction.REVIEW_SHOW.value, EntityType.REVIEW.value): "Показан отзыв",
    (AuditAction.REVIEW_DELETE.value, EntityType.REVIEW.value): "Удалён отзыв",
    (AuditAction.AGGREGATES_RECALCULATE.value, EntityType.ESTABLISHMENT.value): "Пересчитаны рейтинги",
}


def audit_summary(action: str, entity_type: str) -> str:
    return AUDIT_SUMMARIES.get((action, entity_type), f"{action} ({entity_type})")


def _parse_uuid(value: Optional[str]) -> Tuple[bool, Optional[UUID]]:
    """(валиден ли, значение); пустое значение - фильтра нет"""
    if not value:
        return True, None
    try:
        return True, UUID(str(value))
    except ValueError:
        return False, None


class AdminReviewService:
    """Работа администратора с отзывами и журналом аудита"""

    def __init__(self, db: AsyncSession, audit: AuditLogger):
        self.db = db
        self.audit = audit

    async def list_reviews(
        self,
        status: Optional[str] = None,
        establishment_id: Optional[str] = None,
        user_id: Optional[str] = None,
        rating: Optional[int] = None,
        search: Optional[str] = None,
        sort: str = "newest",
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Tuple[Any, ...]], dict]:
        """Все отзывы независимо от флагов, с автором и заведением"""
        params = PageParams.clamp(page, per_page)

        est_ok, est_uuid = _parse_uuid(establishment_id)
        user_ok, user_uuid = _parse_uuid(user_id)
        if not (est_ok and user_ok) or (status and status not in REVIEW_STATUSES):
            # Неизвестные значения фильтров дают пустой результат
            return [], params.meta(0)

        conditions = []
        if status == "visible":
            conditions += [Review.is_visible.is_(True), Review.is_deleted.is_(False)]
        elif status == "hidden":
            conditions += [Review.is_visible.is_(False), Review.is_deleted.is_(False)]
        elif status == "deleted":
            conditions.append(Review.is_deleted.is_(True))

        if est_uuid:
            conditions.append(Review.establishment_id == est_uuid)
        if user_uuid:
            conditions.append(Review.user_id == user_uuid)
        if rating is not None:
            conditions.append(Review.rating == rating)
        if search:
            conditions.append(Review.content.icontains(search, autoescape=True))
        if date_from:
            conditions.append(Review.created_at >= date_from)
        if date_to:
            conditions.append(Review.created_at <= date_to)

        total = (await self.db.execute(
            select(func.count(Review.id)).where(*conditions)
        )).scalar_one()

        result = await self.db.execute(
            select(Review, User.name, User.email, Establishment.name, Establishment.city)
            .join(User, User.id == Review.user_id)
            .join(Establishment, Establishment.id == Review.establishment_id)
            .where(*conditions)
            .order_by(REVIEW_SORTS.get(sort, REVIEW_SORTS["newest"]), Review.id)
            .offset(params.offset)
            .limit(params.per_page)
        )
        return [tuple(row) for row in result.all()], params.meta(total)

    async def toggle_visibility(self, admin: User, review_id: UUID, meta: RequestMeta) -> Review:
        """Скрыть/показать неудалённый отзыв"""
        result = await self.db.execute(
            select(Review).where(Review.id == review_id, Review.is_deleted.is_(False))
        )
        review = result.scalar_one_or_none()
        if review is None:
            raise AppError("Review not found or already deleted", 404, "REVIEW_NOT_FOUND")

        try:
            review.is_visible = not review.is_visible
            await self.db.flush()
            await update_establishment_rating(self.db, review.establishment_id)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error toggling visibility of review {review_id}: {e}")
            raise AppError("Failed to toggle review visibility", 500, "VISIBILITY_TOGGLE_FAILED")

        action = AuditAction.REVIEW_SHOW if review.is_visible else AuditAction.REVIEW_HIDE
        self.audit.record(AuditEntry(
            user_id=admin.id,
            action=action,
            entity_type=EntityType.REVIEW,
            entity_id=review.id,
            old_data={"is_visible": not review.is_visible},
            new_data={"is_visible": review.is_visible},
            meta=meta,
        ))
        logger.info(f"Review {review.id} visibility set to {review.is_visible} by admin {admin.id}")
        return review

    async def delete_review(
        self,
        admin: User,
        review_id: UUID,
        reason: Optional[str],
        meta: RequestMeta,
    ) -> Review:
        """Мягкое удаление с пересчётом агрегатов в той же транзакции"""
        result = await self.db.execute(select(Review).where(Review.id == review_id))
        review = result.scalar_one_or_none()
        if review is None:
            raise AppError("Review not found", 404, "REVIEW_NOT_FOUND")
        if review.is_deleted:
            raise AppError("Review is already deleted", 400, "REVIEW_ALREADY_DELETED")

        try:
            review.is_deleted = True
            await self.db.flush()
            await update_establishment_rating(self.db, review.establishment_id)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error deleting review {review_id}: {e}")
            raise AppError("Failed to delete review", 500, "REVIEW_DELETE_FAILED")

        self.audit.record(AuditEntry(
            user_id=admin.id,
            action=AuditAction.REVIEW_DELETE,
            entity_type=EntityType.REVIEW,
            entity_id=review.id,
            old_data={
                "is_deleted": False,
                "is_visible": review.is_visible,
                "establishment_id": str(review.establishment_id),
            },
            new_data={"is_deleted": True, "reason": reason},
            meta=meta,
        ))
        logger.info(f"Review {review.id} deleted by admin {admin.id}")
        return review

    async def list_audit_log(
        self,
        action: Optional[str] = None,
        entity_type: Optional[str] = None,
        user_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        sort: str = "newest",
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Tuple[AuditLog, Optional[str], Optional[str]]], dict]:
        """Журнал с именем администратора; страница за пределами даёт пустой список"""
        params = PageParams.clamp(page, per_page)

        user_ok, user_uuid = _parse_uuid(user_id)
        if not user_ok:
            return [], params.meta(0)

        conditions = []
        if action:
            conditions.append(AuditLog.action == action)
        if entity_type:
            conditions.append(AuditLog.entity_type == entity_type)
        if user_uuid:
            conditions.append(AuditLog.user_id == user_uuid)
        if date_from:
            conditions.append(AuditLog.created_at >= date_from)
        if date_to:
            conditions.append(AuditLog.created_at <= date_to)

        total = (await self.db.execute(
            select(func.count(AuditLog.id)).where(*conditions)
        )).scalar_one()

        order = AuditLog.created_at.asc() if sort == "oldest" else AuditLog.created_at.desc()
        result = await self.db.execute(
            select(AuditLog, User.name, User.email)
            .outerjoin(User, User.id == AuditLog.user_id)
            .where(*conditions)
            .order_by(order)
            .offset(params.offset)
            .limit(params.per_page)
        )
        return [tuple(row) for row in result.all()], params.meta(total)
