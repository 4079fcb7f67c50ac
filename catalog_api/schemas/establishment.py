import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import ConfigDict, Field, field_validator

from catalog_shared.models.enums import (
    Category, City, Cuisine, EstablishmentStatus, ModerationAction, PriceRange
)
from .base import BaseSchema, TimestampSchema

# Границы Беларуси
LAT_MIN, LAT_MAX = 51.0, 56.0
LON_MIN, LON_MAX = 23.0, 33.0

_NON_DIGITS = re.compile(r"\D")
_PHONE_CHARS = re.compile(r"^\+?[\d\s\-()]+$")


def normalize_belarus_phone(value: Optional[str]) -> Optional[str]:
    """+375 XX XXX XX XX: 12 цифр вместе с кодом страны"""
    if value is None or not value.strip():
        return None
    if not _PHONE_CHARS.match(value.strip()):
        raise ValueError("Please enter a valid Belarus phone number")
    digits = _NON_DIGITS.sub("", value)
    if not digits.startswith("375") or len(digits) != 12:
        raise ValueError("Please enter a valid Belarus phone number")
    return f"+{digits}"


class EstablishmentCreate(BaseSchema):
    """Схема для создания заведения"""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    city: City
    address: str = Field(..., min_length=1, max_length=500)
    latitude: float = Field(..., ge=LAT_MIN, le=LAT_MAX)
    longitude: float = Field(..., ge=LON_MIN, le=LON_MAX)
    phone: Optional[str] = None
    email: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = Field(None, max_length=500)
    categories: List[Category] = Field(..., min_length=1, max_length=2)
    cuisines: List[Cuisine] = Field(..., min_length=1, max_length=3)
    price_range: Optional[PriceRange] = None
    working_hours: Dict[str, Any]
    special_hours: Optional[Dict[str, Any]] = None
    attributes: Optional[Dict[str, Any]] = None

    # Медиа (URL уже загруженных файлов)
    primary_photo: Optional[str] = None
    interior_photos: Optional[List[str]] = None
    menu_photos: Optional[List[str]] = None

    @field_validator("name", "address")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field must not be blank")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return normalize_belarus_phone(v)


class EstablishmentUpdate(BaseSchema):
    """Схема частичного обновления; статус клиентом не меняется"""
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    city: Optional[City] = None
    address: Optional[str] = Field(None, min_length=1, max_length=500)
    latitude: Optional[float] = Field(None, ge=LAT_MIN, le=LAT_MAX)
    longitude: Optional[float] = Field(None, ge=LON_MIN, le=LON_MAX)
    phone: Optional[str] = None
    email: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = Field(None, max_length=500)
    categories: Optional[List[Category]] = Field(None, min_length=1, max_length=2)
    cuisines: Optional[List[Cuisine]] = Field(None, min_length=1, max_length=3)
    price_range: Optional[PriceRange] = None
    working_hours: Optional[Dict[str, Any]] = None
    special_hours: Optional[Dict[str, Any]] = None
    attributes: Optional[Dict[str, Any]] = None

    primary_photo: Optional[str] = None
    interior_photos: Optional[List[str]] = None
    menu_photos: Optional[List[str]] = None

    @field_validator(
        "name", "city", "address", "latitude", "longitude",
        "categories", "cuisines", "working_hours",
        mode="before",
    )
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator("name", "address")
    @classmethod
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Field must not be blank")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return normalize_belarus_phone(v)


class EstablishmentResponse(TimestampSchema):
    """Схема ответа с заведением"""
    id: UUID
    partner_id: UUID
    name: str
    description: Optional[str] = None
    city: str
    address: str
    latitude: float
    longitude: float
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    categories: List[str]
    cuisines: List[str]
    price_range: Optional[str] = None
    working_hours: Optional[Dict[str, Any]] = None
    special_hours: Optional[Dict[str, Any]] = None
    attributes: Optional[Dict[str, Any]] = None
    status: EstablishmentStatus
    moderation_notes: Optional[Dict[str, Any]] = None
    moderated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    average_rating: float = Field(ge=0, le=5)
    review_count: int = Field(ge=0)


class MediaItem(BaseSchema):
    id: UUID
    url: str
    thumbnail_url: Optional[str] = None
    is_primary: bool


class EstablishmentDetailResponse(EstablishmentResponse):
    """Заведение вместе с медиа"""
    primary_photo: Optional[MediaItem] = None
    interior_photos: List[MediaItem] = []
    menu_photos: List[MediaItem] = []


class ModerationRequest(BaseSchema):
    action: ModerationAction
    reason: Optional[str] = Field(None, max_length=2000)
    # Комментарии к отдельным полям: {"name": "..."}
    moderation_notes: Optional[Dict[str, str]] = None


class SuspendRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=2000)


class ArchiveRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=2000)


class PendingEstablishmentResponse(EstablishmentResponse):
    """Элемент очереди модерации"""
    partner_name: Optional[str] = None
    partner_email: Optional[str] = None


def establishment_detail(establishment, media, **extra) -> EstablishmentDetailResponse:
    """Заведение + медиа, разложенные по типам"""
    base = EstablishmentResponse.model_validate(establishment).model_dump()
    primary = next((m for m in media if m.is_primary), None)
    return EstablishmentDetailResponse(
        **base,
        **extra,
        primary_photo=MediaItem.model_validate(primary) if primary else None,
        interior_photos=[MediaItem.model_validate(m) for m in media if m.type == "interior"],
        menu_photos=[MediaItem.model_validate(m) for m in media if m.type == "menu"],
    )


class CoordinatesUpdate(BaseSchema):
    """Исправление координат администратором"""
    latitude: float = Field(..., ge=LAT_MIN, le=LAT_MAX)
    longitude: float = Field(..., ge=LON_MIN, le=LON_MAX)


class RejectionHistoryItem(BaseSchema):
    """Отклонение из журнала аудита вместе с текущим состоянием заведения"""
    audit_id: UUID
    rejection_date: datetime
    new_data: Optional[Dict[str, Any]] = None
    establishment: EstablishmentResponse
