"""
Модерация заведений администратором
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_shared.models import (
    AuditAction, AuditLog, EntityType, Establishment, EstablishmentStatus, ModerationAction, User
)
from catalog_shared.models.base import utcnow

from ..errors import AppError
from ..schemas.establishment import ModerationRequest
from ..utils.pagination import PageParams
from ..utils.rating_updater import update_all_establishment_ratings
from .audit import AuditEntry, AuditLogger, RequestMeta
from .establishments import check_city_coordinates
from .status_engine import SUSPENDED_FROM_KEY, StatusTransitionEngine, Transition

logger = logging.getLogger(__name__)

ACTIVE_SORTS = {
    "newest": [Establishment.published_at.desc().nulls_last(), Establishment.created_at.desc()],
    "oldest": [Establishment.published_at.asc().nulls_last(), Establishment.created_at.asc()],
    "rating": [Establishment.average_rating.desc(), Establishment.review_count.desc()],
}


class ModerationService:
    """Очередь модерации и смена статусов заведений администратором"""

    def __init__(self, db: AsyncSession, audit: AuditLogger):
        self.db = db
        self.audit = audit
        self.engine = StatusTransitionEngine(db)

    async def _get_or_404(self, establishment_id: UUID) -> Establishment:
        result = await self.db.execute(
            select(Establishment).where(Establishment.id == establishment_id)
        )
        establishment = result.scalar_one_or_none()
        if establishment is None:
            raise AppError("Establishment not found", 404, "ESTABLISHMENT_NOT_FOUND")
        return establishment

    async def list_pending(self, page: int = 1, per_page: int = 20) -> Tuple[List[Tuple[Establishment, str, str]], dict]:
        """Заведения в статусе pending, старые первыми"""
        return await self._list_with_partner(
            [Establishment.status == EstablishmentStatus.PENDING.value],
            [Establishment.updated_at.asc(), Establishment.created_at.asc()],
            page,
            per_page,
            at_least_one_page=False,
        )

    async def get_for_moderation(self, establishment_id: UUID) -> Tuple[Establishment, Optional[User]]:
        """Заведение в любом статусе вместе с владельцем"""
        establishment = await self._get_or_404(establishment_id)
        partner = (await self.db.execute(
            select(User).where(User.id == establishment.partner_id)
        )).scalar_one_or_none()
        return establishment, partner

    async def _list_with_partner(
        self,
        conditions: list,
        order_by: list,
        page: int,
        per_page: int,
        at_least_one_page: bool = True,
    ) -> Tuple[List[Tuple[Establishment, str, str]], dict]:
        params = PageParams.clamp(page, per_page)

        total = (await self.db.execute(
            select(func.count(Establishment.id)).where(*conditions)
        )).scalar_one()

        result = await self.db.execute(
            select(Establishment, User.name, User.email)
            .join(User, User.id == Establishment.partner_id)
            .where(*conditions)
            .order_by(*order_by)
            .offset(params.offset)
            .limit(params.per_page)
        )
        return [tuple(row) for row in result.all()], params.meta(total, at_least_one_page)

    async def list_active(
        self,
        page: int = 1,
        per_page: int = 20,
        sort: Optional[str] = None,
        city: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Tuple[Establishment, str, str]], dict]:
        """Опубликованные заведения; неизвестная сортировка - newest"""
        conditions = [Establishment.status == EstablishmentStatus.ACTIVE.value]
        if city:
            conditions.append(Establishment.city == city)
        if search and search.strip():
            conditions.append(Establishment.name.icontains(search.strip(), autoescape=True))

        order_by = ACTIVE_SORTS.get(sort or "newest", ACTIVE_SORTS["newest"])
        return await self._list_with_partner(conditions, order_by, page, per_page)

    async def list_suspended(self, page: int = 1, per_page: int = 20) -> Tuple[List[Tuple[Establishment, str, str]], dict]:
        return await self._list_with_partner(
            [Establishment.status == EstablishmentStatus.SUSPENDED.value],
            [Establishment.updated_at.desc(), Establishment.id],
            page,
            per_page,
        )

    async def list_rejected(self, page: int = 1, per_page: int = 20) -> Tuple[List[Tuple[AuditLog, Establishment]], dict]:
        """История отклонений из audit_log по заведениям, которые всё ещё в rejected"""
        params = PageParams.clamp(page, per_page)
        conditions = (
            AuditLog.action == AuditAction.MODERATE_REJECT.value,
            AuditLog.entity_type == EntityType.ESTABLISHMENT.value,
            Establishment.status == EstablishmentStatus.REJECTED.value,
        )

        total = (await self.db.execute(
            select(func.count(AuditLog.id))
            .join(Establishment, Establishment.id == AuditLog.entity_id)
            .where(*conditions)
        )).scalar_one()

        result = await self.db.execute(
            select(AuditLog, Establishment)
            .join(Establishment, Establishment.id == AuditLog.entity_id)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc(), AuditLog.id)
            .offset(params.offset)
            .limit(params.per_page)
        )
        return [tuple(row) for row in result.all()], params.meta(total, at_least_one_page=True)

    async def search_all(
        self,
        search: Optional[str],
        status: Optional[str] = None,
        city: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Tuple[Establishment, str, str]], dict]:
        """Поиск по названию среди заведений в любом статусе"""
        if not search or not search.strip():
            raise AppError("Search query is required", 400, "SEARCH_REQUIRED")

        conditions = [Establishment.name.icontains(search.strip(), autoescape=True)]
        if status:
            conditions.append(Establishment.status == status)
        if city:
            conditions.append(Establishment.city == city)

        return await self._list_with_partner(
            conditions,
            [Establishment.created_at.desc(), Establishment.id],
            page,
            per_page,
        )

    async def update_coordinates(
        self,
        admin: User,
        establishment_id: UUID,
        latitude: float,
        longitude: float,
        meta: RequestMeta,
    ) -> Establishment:
        """Исправление координат без смены статуса"""
        establishment = await self._get_or_404(establishment_id)
        check_city_coordinates(establishment.city, latitude, longitude)

        old_data = {"latitude": establishment.latitude, "longitude": establishment.longitude}
        try:
            establishment.latitude = latitude
            establishment.longitude = longitude
            await self.db.commit()
            await self.db.refresh(establishment)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error updating coordinates of establishment {establishment_id}: {e}")
            raise AppError("Failed to update establishment coordinates", 500, "COORDINATES_UPDATE_FAILED")

        self._record(
            admin,
            AuditAction.ADMIN_UPDATE_COORDINATES,
            establishment.id,
            old_data,
            {"latitude": latitude, "longitude": longitude},
            meta,
        )
        logger.info(
            f"Admin {admin.id} moved establishment {establishment.id} "
            f"from {old_data['latitude']},{old_data['longitude']} to {latitude},{longitude}"
        )
        return establishment

    def _record(
        self,
        admin: User,
        action: AuditAction,
        establishment_id: UUID,
        old_data: Dict[str, Any],
        new_data: Dict[str, Any],
        meta: RequestMeta,
    ) -> None:
        self.audit.record(AuditEntry(
            user_id=admin.id,
            action=action,
            entity_type=EntityType.ESTABLISHMENT,
            entity_id=establishment_id,
            old_data=old_data,
            new_data=new_data,
            meta=meta,
        ))

    async def moderate(
        self,
        admin: User,
        establishment_id: UUID,
        request: ModerationRequest,
        meta: RequestMeta,
    ) -> Establishment:
        """approve: pending -> active, reject: pending -> rejected"""
        establishment = await self._get_or_404(establishment_id)
        old_status = establishment.status

        notes: Dict[str, Any] = dict(request.moderation_notes or {})
        if request.reason:
            notes["reason"] = request.reason

        values: Dict[str, Any] = {
            "moderated_by": admin.id,
            "moderated_at": utcnow(),
            "moderation_notes": notes or None,
        }

        if request.action is ModerationAction.APPROVE:
            transition, audit_action = Transition.APPROVE, AuditAction.MODERATE_APPROVE
            if establishment.published_at is None:
                values["published_at"] = utcnow()
        elif request.action is ModerationAction.REJECT:
            transition, audit_action = Transition.REJECT, AuditAction.MODERATE_REJECT
        else:
            raise AppError(
                'Invalid moderation action. Must be "approve" or "reject".',
                400,
                "INVALID_MODERATION_ACTION",
            )

        await self.engine.apply(establishment, transition, values)
        await self.db.commit()

        self._record(
            admin,
            audit_action,
            establishment.id,
            {"status": old_status},
            {"status": establishment.status, "moderation_notes": notes},
            meta,
        )
        logger.info(
            f"Establishment {establishment.id} moderated by admin {admin.id}: "
            f"{request.action.value}, {old_status} -> {establishment.status}"
        )
        return establishment

    async def suspend(
        self,
        admin: User,
        establishment_id: UUID,
        reason: Optional[str],
        meta: RequestMeta,
    ) -> Establishment:
        if not reason or not reason.strip():
            raise AppError("Suspension reason is required", 400, "REASON_REQUIRED")
        reason = reason.strip()

        establishment = await self._get_or_404(establishment_id)
        old_status = establishment.status

        notes = dict(establishment.moderation_notes or {})
        notes["suspend_reason"] = reason
        notes["suspended_at"] = utcnow().isoformat()
        notes[SUSPENDED_FROM_KEY] = old_status

        await self.engine.apply(establishment, Transition.SUSPEND, {"moderation_notes": notes})
        await self.db.commit()

        self._record(
            admin,
            AuditAction.SUSPEND_ESTABLISHMENT,
            establishment.id,
            {"status": old_status},
            {"status": establishment.status, "reason": reason},
            meta,
        )
        logger.info(f"Establishment {establishment.id} suspended by admin {admin.id}: {reason}")
        return establishment

    async def unsuspend(self, admin: User, establishment_id: UUID, meta: RequestMeta) -> Establishment:
        """suspended -> статус до блокировки"""
        establishment = await self._get_or_404(establishment_id)
        old_status = establishment.status

        notes = dict(establishment.moderation_notes or {})
        notes.pop(SUSPENDED_FROM_KEY, None)

        await self.engine.apply(establishment, Transition.UNSUSPEND, {"moderation_notes": notes or None})
        await self.db.commit()

        self._record(
            admin,
            AuditAction.UNSUSPEND_ESTABLISHMENT,
            establishment.id,
            {"status": old_status},
            {"status": establishment.status},
            meta,
        )
        logger.info(f"Establishment {establishment.id} unsuspended by admin {admin.id}")
        return establishment

    async def archive(
        self,
        admin: User,
        establishment_id: UUID,
        reason: Optional[str],
        meta: RequestMeta,
    ) -> Establishment:
        establishment = await self._get_or_404(establishment_id)
        old_status = establishment.status

        values = {}
        if reason and reason.strip():
            notes = dict(establishment.moderation_notes or {})
            notes["archive_reason"] = reason.strip()
            values["moderation_notes"] = notes

        await self.engine.apply(establishment, Transition.ARCHIVE, values)
        await self.db.commit()

        self._record(
            admin,
            AuditAction.ARCHIVE_ESTABLISHMENT,
            establishment.id,
            {"status": old_status},
            {"status": establishment.status, "reason": reason},
            meta,
        )
        logger.info(f"Establishment {establishment.id} archived by admin {admin.id}")
        return establishment

    async def recalculate_all(self, admin: User, meta: RequestMeta) -> int:
        """Полный пересчёт агрегатов по всем заведениям"""
        try:
            updated = await update_all_establishment_ratings(self.db)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error recalculating establishment aggregates: {e}")
            raise AppError("Failed to recalculate ratings", 500, "RECALCULATE_FAILED")

        self.audit.record(AuditEntry(
            user_id=admin.id,
            action=AuditAction.AGGREGATES_RECALCULATE,
            entity_type=EntityType.ESTABLISHMENT,
            entity_id=None,
            new_data={"updated": updated},
            meta=meta,
        ))
        return updated
