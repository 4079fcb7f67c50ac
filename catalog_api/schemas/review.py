from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from .base import BaseSchema, TimestampSchema


def _check_content(v: str) -> str:
    v = v.strip()
    if len(v) < 20:
        raise ValueError("Review must be at least 20 characters")
    if len(set(v.replace(" ", ""))) < 5:
        raise ValueError("Review content looks like spam")
    return v


class ReviewCreate(BaseSchema):
    """Схема для создания отзыва"""
    establishment_id: UUID
    rating: int = Field(..., ge=1, le=5)
    content: str = Field(..., min_length=20, max_length=1000)

    @field_validator("content")
    @classmethod
    def content_not_spam(cls, v: str) -> str:
        return _check_content(v)


class ReviewUpdate(BaseSchema):
    """Правка отзыва автором: хотя бы одно из полей"""
    rating: Optional[int] = Field(None, ge=1, le=5)
    content: Optional[str] = Field(None, min_length=20, max_length=1000)

    @field_validator("content")
    @classmethod
    def content_not_spam(cls, v: Optional[str]) -> Optional[str]:
        return _check_content(v) if v is not None else v


class PartnerResponseCreate(BaseSchema):
    response: str = Field(..., min_length=1, max_length=1000)

    @field_validator("response")
    @classmethod
    def strip_response(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Response must not be blank")
        return v


class DeleteReviewRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=2000)


class ReviewResponse(TimestampSchema):
    """Схема ответа с отзывом"""
    id: UUID
    user_id: UUID
    establishment_id: UUID
    rating: int
    content: Optional[str] = None
    is_visible: bool
    is_edited: bool
    partner_response: Optional[str] = None
    partner_response_at: Optional[datetime] = None


class PublicReviewResponse(ReviewResponse):
    author_name: Optional[str] = None


class UserReviewResponse(ReviewResponse):
    establishment_name: Optional[str] = None
    establishment_city: Optional[str] = None


class AdminReviewResponse(ReviewResponse):
    """Отзыв для админки: со всеми флагами и именами"""
    is_deleted: bool
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    establishment_name: Optional[str] = None
    establishment_city: Optional[str] = None
    has_partner_response: bool = False
