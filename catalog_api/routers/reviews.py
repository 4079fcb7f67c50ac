from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from catalog_shared.models import User

from ..dependencies import get_review_service, require_any, require_partner
from ..schemas.review import (
    PartnerResponseCreate, PublicReviewResponse, ReviewCreate, ReviewResponse, ReviewUpdate, UserReviewResponse
)
from ..services.reviews import ReviewService

router = APIRouter(tags=["Reviews"])


@router.post("/reviews", status_code=status.HTTP_201_CREATED)
async def create_review(
    data: ReviewCreate,
    current_user: User = Depends(require_any),
    service: ReviewService = Depends(get_review_service),
):
    """Оставить отзыв о заведении"""
    review = await service.create(current_user, data)
    return {"success": True, "data": ReviewResponse.model_validate(review).model_dump(mode="json")}


@router.get("/establishments/{establishment_id}/reviews")
async def list_establishment_reviews(
    establishment_id: UUID,
    page: int = Query(1),
    per_page: int = Query(20),
    service: ReviewService = Depends(get_review_service),
):
    """Опубликованные отзывы заведения"""
    rows, meta = await service.list_for_establishment(establishment_id, page, per_page)
    data = []
    for review, author_name in rows:
        item = PublicReviewResponse.model_validate(review)
        item.author_name = author_name
        data.append(item.model_dump(mode="json"))
    return {"success": True, "data": data, "meta": meta}


@router.get("/reviews/quota")
async def get_review_quota(
    current_user: User = Depends(require_any),
    service: ReviewService = Depends(get_review_service),
):
    """Сколько отзывов пользователь ещё может оставить в текущем окне"""
    return {"success": True, "data": await service.quota(current_user)}


@router.get("/reviews/{review_id}")
async def get_review(
    review_id: UUID,
    service: ReviewService = Depends(get_review_service),
):
    review, author_name = await service.get_public(review_id)
    item = PublicReviewResponse.model_validate(review)
    item.author_name = author_name
    return {"success": True, "data": item.model_dump(mode="json")}


@router.put("/reviews/{review_id}")
async def update_review(
    review_id: UUID,
    data: ReviewUpdate,
    current_user: User = Depends(require_any),
    service: ReviewService = Depends(get_review_service),
):
    """Правка собственного отзыва"""
    review = await service.update_own(current_user, review_id, data)
    return {"success": True, "data": ReviewResponse.model_validate(review).model_dump(mode="json")}


@router.get("/users/{user_id}/reviews")
async def list_user_reviews(
    user_id: UUID,
    page: int = Query(1),
    per_page: int = Query(20),
    service: ReviewService = Depends(get_review_service),
):
    """Отзывы пользователя"""
    rows, meta = await service.list_for_user(user_id, page, per_page)
    data = []
    for review, establishment_name, establishment_city in rows:
        item = UserReviewResponse.model_validate(review)
        item.establishment_name = establishment_name
        item.establishment_city = establishment_city
        data.append(item.model_dump(mode="json"))
    return {"success": True, "data": data, "meta": meta}


@router.delete("/reviews/{review_id}")
async def delete_review(
    review_id: UUID,
    current_user: User = Depends(require_any),
    service: ReviewService = Depends(get_review_service),
):
    review = await service.delete_own(current_user, review_id)
    return {"success": True, "data": {"id": str(review.id), "is_deleted": review.is_deleted}}


@router.post("/reviews/{review_id}/response")
async def add_partner_response(
    review_id: UUID,
    data: PartnerResponseCreate,
    current_user: User = Depends(require_partner),
    service: ReviewService = Depends(get_review_service),
):
    """Ответ владельца заведения на отзыв"""
    review = await service.add_partner_response(current_user, review_id, data.response)
    return {"success": True, "data": ReviewResponse.model_validate(review).model_dump(mode="json")}


@router.delete("/reviews/{review_id}/response")
async def delete_partner_response(
    review_id: UUID,
    current_user: User = Depends(require_partner),
    service: ReviewService = Depends(get_review_service),
):
    review = await service.delete_partner_response(current_user, review_id)
    return {"success": True, "data": ReviewResponse.model_validate(review).model_dump(mode="json")}
