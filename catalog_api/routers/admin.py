"""
Админка: модерация заведений, отзывы, журнал аудита
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from catalog_shared.models import User

from ..dependencies import (
    get_admin_review_service, get_establishment_service, get_moderation_service,
    get_request_meta, require_admin
)
from ..schemas.audit import AuditLogEntryResponse
from ..schemas.establishment import (
    ArchiveRequest, CoordinatesUpdate, EstablishmentResponse, ModerationRequest, PendingEstablishmentResponse,
    RejectionHistoryItem, SuspendRequest, establishment_detail
)
from ..schemas.review import AdminReviewResponse, DeleteReviewRequest
from ..services.admin_reviews import AdminReviewService, audit_summary
from ..services.audit import RequestMeta
from ..services.establishments import EstablishmentService
from ..services.moderation import ModerationService

router = APIRouter(prefix="/admin", tags=["Admin"])

_METADATA_FIELDS = {"ip_address", "user_agent"}


def _establishment_payload(establishment) -> dict:
    return {
        "success": True,
        "data": EstablishmentResponse.model_validate(establishment).model_dump(mode="json"),
    }


def _listing_payload(rows, meta) -> dict:
    data = [
        PendingEstablishmentResponse(
            **EstablishmentResponse.model_validate(establishment).model_dump(),
            partner_name=partner_name,
            partner_email=partner_email,
        ).model_dump(mode="json")
        for establishment, partner_name, partner_email in rows
    ]
    return {"success": True, "data": data, "meta": meta}


# --- Заведения ---

@router.get("/establishments/pending")
async def list_pending_establishments(
    page: int = Query(1),
    per_page: int = Query(20),
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
):
    """Очередь модерации"""
    rows, meta = await service.list_pending(page, per_page)
    return _listing_payload(rows, meta)


@router.get("/establishments/active")
async def list_active_establishments(
    page: int = Query(1),
    per_page: int = Query(20),
    sort: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
):
    """Опубликованные заведения"""
    rows, meta = await service.list_active(page, per_page, sort=sort, city=city, search=search)
    return _listing_payload(rows, meta)


@router.get("/establishments/suspended")
async def list_suspended_establishments(
    page: int = Query(1),
    per_page: int = Query(20),
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
):
    rows, meta = await service.list_suspended(page, per_page)
    return _listing_payload(rows, meta)


@router.get("/establishments/rejected")
async def list_rejected_establishments(
    page: int = Query(1),
    per_page: int = Query(20),
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
):
    """История отклонений"""
    rows, meta = await service.list_rejected(page, per_page)
    data = [
        RejectionHistoryItem(
            audit_id=entry.id,
            rejection_date=entry.created_at,
            new_data=entry.new_data,
            establishment=EstablishmentResponse.model_validate(establishment),
        ).model_dump(mode="json")
        for entry, establishment in rows
    ]
    return {"success": True, "data": data, "meta": meta}


@router.get("/establishments/search")
async def search_establishments(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    page: int = Query(1),
    per_page: int = Query(20),
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
):
    """Поиск по названию во всех статусах"""
    rows, meta = await service.search_all(search, status=status, city=city, page=page, per_page=per_page)
    return _listing_payload(rows, meta)


@router.get("/establishments/{establishment_id}")
async def get_establishment_for_moderation(
    establishment_id: UUID,
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(get_moderation_service),
    establishments: EstablishmentService = Depends(get_establishment_service),
):
    """Полная карточка заведения в любом статусе"""
    establishment, partner = await service.get_for_moderation(establishment_id)
    media = await establishments.get_media(establishment.id)
    detail = establishment_detail(establishment, media).model_dump(mode="json")
    detail["partner"] = {
        "id": str(partner.id),
        "name": partner.name,
        "email": partner.email,
    } if partner else None
    return {"success": True, "data": detail}


@router.post("/establishments/{establishment_id}/moderate")
async def moderate_establishment(
    establishment_id: UUID,
    request: ModerationRequest,
    admin: User = Depends(require_admin),
    meta: RequestMeta = Depends(get_request_meta),
    service: ModerationService = Depends(get_moderation_service),
):
    """Одобрить или отклонить заведение"""
    establishment = await service.moderate(admin, establishment_id, request, meta)
    return _establishment_payload(establishment)


@router.post("/establishments/{establishment_id}/suspend")
async def suspend_establishment(
    establishment_id: UUID,
    request: Optional[SuspendRequest] = None,
    admin: User = Depends(require_admin),
    meta: RequestMeta = Depends(get_request_meta),
    service: ModerationService = Depends(get_moderation_service),
):
    reason = request.reason if request else None
    establishment = await service.suspend(admin, establishment_id, reason, meta)
    return _establishment_payload(establishment)


@router.post("/establishments/{establishment_id}/unsuspend")
async def unsuspend_establishment(
    establishment_id: UUID,
    admin: User = Depends(require_admin),
    meta: RequestMeta = Depends(get_request_meta),
    service: ModerationService = Depends(get_moderation_service),
):
    establishment = await service.unsuspend(admin, establishment_id, meta)
    return _establishment_payload(establishment)


@router.post("/establishments/{establishment_id}/archive")
async def archive_establishment(
    establishment_id: UUID,
    request: Optional[ArchiveRequest] = None,
    admin: User = Depends(require_admin),
    meta: RequestMeta = Depends(get_request_meta),
    service: ModerationService = Depends(get_moderation_service),
):
    reason = request.reason if request else None
    establishment = await service.archive(admin, establishment_id, reason, meta)
    return _establishment_payload(establishment)


@router.patch("/establishments/{establishment_id}/coordinates")
async def update_establishment_coordinates(
    establishment_id: UUID,
    request: CoordinatesUpdate,
    admin: User = Depends(require_admin),
    meta: RequestMeta = Depends(get_request_meta),
    service: ModerationService = Depends(get_moderation_service),
):
    """Исправить координаты (ошибка геокодирования)"""
    establishment = await service.update_coordinates(
        admin, establishment_id, request.latitude, request.longitude, meta
    )
    return _establishment_payload(establishment)


@router.post("/ratings/recalculate")
async def recalculate_ratings(
    admin: User = Depends(require_admin),
    meta: RequestMeta = Depends(get_request_meta),
    service: ModerationService = Depends(get_moderation_service),
):
    """Пересчитать average_rating/review_count у всех заведений"""
    updated = await service.recalculate_all(admin, meta)
    return {"success": True, "data": {"updated": updated}}


# --- Отзывы ---

@router.get("/reviews")
async def list_reviews(
    status: Optional[str] = Query(None),
    establishment_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    rating: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    sort: str = Query("newest"),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    page: int = Query(1),
    per_page: int = Query(20),
    admin: User = Depends(require_admin),
    service: AdminReviewService = Depends(get_admin_review_service),
):
    """Все отзывы, включая скрытые и удалённые"""
    rows, meta = await service.list_reviews(
        status=status,
        establishment_id=establishment_id,
        user_id=user_id,
        rating=rating,
        search=search,
        sort=sort,
        date_from=date_from,
        date_to=date_to,
        page=page,
        per_page=per_page,
    )
    data = []
    for review, author_name, author_email, establishment_name, establishment_city in rows:
        item = AdminReviewResponse.model_validate(review)
        item.author_name = author_name
        item.author_email = author_email
        item.establishment_name = establishment_name
        item.establishment_city = establishment_city
        item.has_partner_response = bool(review.partner_response)
        data.append(item.model_dump(mode="json"))
    return {"success": True, "data": data, "meta": meta}


@router.post("/reviews/{review_id}/toggle-visibility")
async def toggle_review_visibility(
    review_id: UUID,
    admin: User = Depends(require_admin),
    meta: RequestMeta = Depends(get_request_meta),
    service: AdminReviewService = Depends(get_admin_review_service),
):
    review = await service.toggle_visibility(admin, review_id, meta)
    return {"success": True, "data": {"id": str(review.id), "is_visible": review.is_visible}}


@router.post("/reviews/{review_id}/delete")
async def delete_review(
    review_id: UUID,
    request: Optional[DeleteReviewRequest] = None,
    admin: User = Depends(require_admin),
    meta: RequestMeta = Depends(get_request_meta),
    service: AdminReviewService = Depends(get_admin_review_service),
):
    """Мягкое удаление отзыва"""
    reason = request.reason if request else None
    review = await service.delete_review(admin, review_id, reason, meta)
    return {"success": True, "data": {"id": str(review.id), "is_deleted": review.is_deleted}}


# --- Журнал аудита ---

@router.get("/audit-log")
async def list_audit_log(
    action: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    sort: str = Query("newest"),
    include_metadata: bool = Query(False),
    page: int = Query(1),
    per_page: int = Query(20),
    admin: User = Depends(require_admin),
    service: AdminReviewService = Depends(get_admin_review_service),
):
    rows, meta = await service.list_audit_log(
        action=action,
        entity_type=entity_type,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        sort=sort,
        page=page,
        per_page=per_page,
    )
    exclude = None if include_metadata else _METADATA_FIELDS
    data = [
        AuditLogEntryResponse(
            id=entry.id,
            user_id=entry.user_id,
            admin_name=admin_name,
            admin_email=admin_email,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            old_data=entry.old_data,
            new_data=entry.new_data,
            summary=audit_summary(entry.action, entry.entity_type),
            created_at=entry.created_at,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
        ).model_dump(mode="json", exclude=exclude)
        for entry, admin_name, admin_email in rows
    ]
    return {"success": True, "data": data, "meta": meta}
