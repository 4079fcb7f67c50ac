"""
Сервис заведений партнёра: создание, список, просмотр, обновление, отправка на модерацию
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_shared.models import (
    City, Establishment, EstablishmentMedia, EstablishmentStatus, MediaType, User, UserRole
)

from ..errors import AppError
from ..schemas.establishment import EstablishmentCreate, EstablishmentUpdate
from ..utils.pagination import PageParams
from .status_engine import (
    StatusTransitionEngine, Transition, changed_major_fields, status_after_edit
)

logger = logging.getLogger(__name__)

# Границы городов с пригородами: (lat_min, lat_max, lon_min, lon_max)
CITY_BOUNDS: Dict[City, Tuple[float, float, float, float]] = {
    City.MINSK: (53.75, 54.10, 27.30, 27.85),
    City.GRODNO: (53.55, 53.78, 23.70, 24.00),
    City.BREST: (51.98, 52.20, 23.55, 23.85),
    City.GOMEL: (52.32, 52.52, 30.85, 31.15),
    City.VITEBSK: (55.10, 55.28, 30.05, 30.35),
    City.MOGILEV: (53.82, 54.00, 30.20, 30.50),
    City.BOBRUISK: (53.08, 53.22, 29.10, 29.40),
}

_MEDIA_FIELDS = (("interior_photos", MediaType.INTERIOR), ("menu_photos", MediaType.MENU))
_REQUIRED_FOR_SUBMIT = ("name", "city", "address", "categories", "cuisines", "working_hours")


def check_city_coordinates(city: str, latitude: float, longitude: float) -> None:
    """Координаты должны попадать в границы выбранного города"""
    bounds = CITY_BOUNDS.get(City(city))
    if bounds is None:
        return
    lat_min, lat_max, lon_min, lon_max = bounds
    if lat_min <= latitude <= lat_max and lon_min <= longitude <= lon_max:
        return
    raise AppError(
        f"Coordinates ({latitude}, {longitude}) are outside {city} city bounds. "
        f"Expected: lat {lat_min}-{lat_max}, lon {lon_min}-{lon_max}.",
        422,
        "COORDINATES_CITY_MISMATCH",
        details=[{"field": "coordinates", "message": "Coordinates do not match the selected city"}],
    )


class EstablishmentService:
    """Операции партнёра над своими заведениями"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.engine = StatusTransitionEngine(db)

    async def _get(self, establishment_id: UUID) -> Optional[Establishment]:
        result = await self.db.execute(
            select(Establishment).where(Establishment.id == establishment_id)
        )
        return result.scalar_one_or_none()

    async def _get_owned_or_403(self, establishment_id: UUID, partner: User) -> Establishment:
        establishment = await self._get(establishment_id)
        if establishment is None or establishment.partner_id != partner.id:
            logger.warning(f"Partner {partner.id} denied access to establishment {establishment_id}")
            raise AppError(
                "Access denied. You can only update your own establishments.",
                403,
                "FORBIDDEN",
            )
        return establishment

    async def _name_taken(self, partner_id: UUID, name: str, exclude_id: Optional[UUID] = None) -> bool:
        query = select(func.count(Establishment.id)).where(
            Establishment.partner_id == partner_id,
            func.lower(Establishment.name) == func.lower(name),
        )
        if exclude_id is not None:
            query = query.where(Establishment.id != exclude_id)
        result = await self.db.execute(query)
        return result.scalar_one() > 0

    async def get_media(self, establishment_id: UUID) -> List[EstablishmentMedia]:
        result = await self.db.execute(
            select(EstablishmentMedia)
            .where(EstablishmentMedia.establishment_id == establishment_id)
            .order_by(EstablishmentMedia.type, EstablishmentMedia.position)
        )
        return list(result.scalars().all())

    async def create(self, partner: User, data: EstablishmentCreate) -> Establishment:
        """Создать заведение в статусе draft вместе с медиа"""
        values = data.model_dump(mode="json")
        check_city_coordinates(values["city"], values["latitude"], values["longitude"])

        if await self._name_taken(partner.id, values["name"]):
            raise AppError(
                "You already have an establishment with this name",
                409,
                "DUPLICATE_ESTABLISHMENT",
            )

        primary_photo = values.pop("primary_photo")
        photos = {field: values.pop(field) or [] for field, _ in _MEDIA_FIELDS}

        try:
            establishment = Establishment(
                partner_id=partner.id,
                status=EstablishmentStatus.DRAFT.value,
                average_rating=0.0,
                review_count=0,
                **values,
            )
            self.db.add(establishment)
            await self.db.flush()

            for field, media_type in _MEDIA_FIELDS:
                for position, url in enumerate(photos[field]):
                    self.db.add(EstablishmentMedia(
                        establishment_id=establishment.id,
                        type=media_type.value,
                        url=url,
                        thumbnail_url=url,
                        position=position,
                        is_primary=url == primary_photo,
                    ))

            # Первое заведение делает обычного пользователя партнёром
            role = UserRole(partner.role)
            if role is UserRole.USER:
                partner.role = UserRole.PARTNER.value
                logger.info(f"User {partner.id} upgraded to partner")

            await self.db.commit()
            await self.db.refresh(establishment)

        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Integrity error creating establishment for partner {partner.id}: {e}")
            raise AppError(
                "An establishment with this information already exists",
                409,
                "DUPLICATE_ESTABLISHMENT",
            )
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error creating establishment for partner {partner.id}: {e}")
            raise AppError("Failed to create establishment", 500, "ESTABLISHMENT_CREATE_FAILED")

        logger.info(
            f"Establishment created: id={establishment.id}, partner={partner.id}, "
            f"city={establishment.city}, media={sum(len(v) for v in photos.values())}"
        )
        return establishment

    async def list_for_partner(
        self,
        partner: User,
        status: Optional[EstablishmentStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        """Заведения партнёра с пагинацией (limit не больше 50)"""
        params = PageParams.clamp(page, limit)

        query = select(Establishment).where(Establishment.partner_id == partner.id)
        count_query = select(func.count(Establishment.id)).where(Establishment.partner_id == partner.id)
        if status is not None:
            query = query.where(Establishment.status == status.value)
            count_query = count_query.where(Establishment.status == status.value)

        total = (await self.db.execute(count_query)).scalar_one()
        result = await self.db.execute(
            query.order_by(Establishment.created_at.desc())
            .offset(params.offset)
            .limit(params.per_page)
        )
        establishments = list(result.scalars().all())

        meta = params.meta(total)
        logger.debug(f"Partner {partner.id}: {len(establishments)} of {total} establishments, page {params.page}")
        return {
            "establishments": establishments,
            "pagination": {
                "total": meta["total"],
                "page": meta["page"],
                "limit": meta["per_page"],
                "pages": meta["pages"],
            },
        }

    async def get_for_partner(self, establishment_id: UUID, partner: User) -> Establishment:
        """Чужое заведение неотличимо от несуществующего"""
        establishment = await self._get(establishment_id)
        if establishment is None or establishment.partner_id != partner.id:
            raise AppError(
                "Establishment not found or access denied",
                404,
                "ESTABLISHMENT_NOT_FOUND",
            )
        return establishment

    async def update(self, establishment_id: UUID, partner: User, data: EstablishmentUpdate) -> Establishment:
        """Частичное обновление; смена основных полей у активного заведения возвращает его на модерацию"""
        establishment = await self._get_owned_or_403(establishment_id, partner)
        current = EstablishmentStatus(establishment.status)

        if current is EstablishmentStatus.SUSPENDED:
            raise AppError(
                "Cannot update suspended establishment. Contact support.",
                403,
                "ESTABLISHMENT_SUSPENDED",
            )

        updates = data.model_dump(mode="json", exclude_unset=True)
        primary_photo = updates.pop("primary_photo", None)
        media_updates = {field: updates.pop(field) for field, _ in _MEDIA_FIELDS if field in updates}

        if updates.keys() & {"city", "latitude", "longitude"}:
            check_city_coordinates(
                updates.get("city", establishment.city),
                updates.get("latitude", establishment.latitude),
                updates.get("longitude", establishment.longitude),
            )

        if "name" in updates and updates["name"] != establishment.name:
            if await self._name_taken(partner.id, updates["name"], exclude_id=establishment.id):
                raise AppError(
                    "You already have an establishment with this name",
                    409,
                    "DUPLICATE_ESTABLISHMENT",
                )

        major = changed_major_fields(establishment, updates)
        new_status = status_after_edit(current, bool(major))

        try:
            for field, value in updates.items():
                setattr(establishment, field, value)
            if new_status is not None:
                establishment.status = new_status.value

            if media_updates:
                await self._sync_media(establishment.id, media_updates, primary_photo)

            await self.db.commit()
            await self.db.refresh(establishment)

        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error updating establishment {establishment_id}: {e}")
            raise AppError("Failed to update establishment", 500, "ESTABLISHMENT_UPDATE_FAILED")

        if new_status is not None:
            logger.info(
                f"Establishment {establishment.id}: {current.value} -> {new_status.value} "
                f"(edit, major fields: {sorted(major)})"
            )
        logger.info(f"Establishment updated: id={establishment.id}, fields={sorted(updates)}")
        return establishment

    async def _sync_media(
        self,
        establishment_id: UUID,
        media_updates: Dict[str, Optional[List[str]]],
        primary_photo: Optional[str],
    ) -> None:
        """Привести медиа к присланным спискам URL (в текущей транзакции)"""
        existing = await self.get_media(establishment_id)

        for field, media_type in _MEDIA_FIELDS:
            if field not in media_updates:
                continue
            new_urls = media_updates[field] or []
            existing_of_type = [m for m in existing if m.type == media_type.value]
            existing_urls = {m.url for m in existing_of_type}

            removed = [m.id for m in existing_of_type if m.url not in new_urls]
            if removed:
                await self.db.execute(delete(EstablishmentMedia).where(EstablishmentMedia.id.in_(removed)))

            added = [url for url in new_urls if url not in existing_urls]
            for offset, url in enumerate(added):
                self.db.add(EstablishmentMedia(
                    establishment_id=establishment_id,
                    type=media_type.value,
                    url=url,
                    thumbnail_url=url,
                    position=len(existing_of_type) + offset,
                    is_primary=url == primary_photo,
                ))

            if primary_photo:
                for media in existing_of_type:
                    if media.url in new_urls:
                        media.is_primary = media.url == primary_photo

        logger.info(f"Media synced for establishment {establishment_id}")

    async def submit(self, establishment_id: UUID, partner: User) -> Establishment:
        """draft -> pending"""
        establishment = await self._get_owned_or_403(establishment_id, partner)
        self.engine.ensure_allowed(establishment, Transition.SUBMIT)

        missing = [f for f in _REQUIRED_FOR_SUBMIT if not getattr(establishment, f)]
        if missing:
            raise AppError(
                f"Missing required fields: {', '.join(missing)}",
                400,
                "INCOMPLETE_ESTABLISHMENT",
            )

        await self.engine.apply(establishment, Transition.SUBMIT)
        await self.db.commit()

        logger.info(f"Establishment {establishment.id} submitted for moderation by partner {partner.id}")
        return establishment
