from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from catalog_shared.models import EstablishmentStatus, User

from ..dependencies import get_establishment_service, require_partner, require_user_or_partner
from ..schemas.establishment import (
    EstablishmentCreate, EstablishmentResponse, EstablishmentUpdate, establishment_detail
)
from ..services.establishments import EstablishmentService

router = APIRouter(prefix="/partner/establishments", tags=["Partner establishments"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_establishment(
    data: EstablishmentCreate,
    current_user: User = Depends(require_user_or_partner),
    service: EstablishmentService = Depends(get_establishment_service),
):
    """Создать заведение (статус draft)"""
    establishment = await service.create(current_user, data)
    media = await service.get_media(establishment.id)
    return {
        "success": True,
        "data": {"establishment": establishment_detail(establishment, media).model_dump(mode="json")},
    }


@router.get("")
async def list_establishments(
    status_filter: Optional[EstablishmentStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    current_user: User = Depends(require_partner),
    service: EstablishmentService = Depends(get_establishment_service),
):
    """Заведения текущего партнёра"""
    result = await service.list_for_partner(current_user, status_filter, page, limit)
    return {
        "success": True,
        "data": {
            "establishments": [
                EstablishmentResponse.model_validate(e).model_dump(mode="json")
                for e in result["establishments"]
            ],
            "pagination": result["pagination"],
        },
    }


@router.get("/{establishment_id}")
async def get_establishment(
    establishment_id: UUID,
    current_user: User = Depends(require_partner),
    service: EstablishmentService = Depends(get_establishment_service),
):
    establishment = await service.get_for_partner(establishment_id, current_user)
    media = await service.get_media(establishment.id)
    return {
        "success": True,
        "data": {"establishment": establishment_detail(establishment, media).model_dump(mode="json")},
    }


@router.put("/{establishment_id}")
async def update_establishment(
    establishment_id: UUID,
    data: EstablishmentUpdate,
    current_user: User = Depends(require_partner),
    service: EstablishmentService = Depends(get_establishment_service),
):
    """Частичное обновление заведения"""
    establishment = await service.update(establishment_id, current_user, data)
    media = await service.get_media(establishment.id)
    return {
        "success": True,
        "data": {"establishment": establishment_detail(establishment, media).model_dump(mode="json")},
    }


@router.post("/{establishment_id}/submit")
async def submit_establishment(
    establishment_id: UUID,
    current_user: User = Depends(require_partner),
    service: EstablishmentService = Depends(get_establishment_service),
):
    """Отправить заведение на модерацию"""
    establishment = await service.submit(establishment_id, current_user)
    return {
        "success": True,
        "data": {"establishment": EstablishmentResponse.model_validate(establishment).model_dump(mode="json")},
    }
