"""Reviews API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from app.modules.identity.service import get_current_user
from app.modules.reviews.schemas import ReviewCreate, ReviewRead, ReviewUpdate
from app.modules.reviews.service import ReviewsService, get_reviews_service
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post("", response_model=ReviewRead, status_code=status.HTTP_201_CREATED)
async def submit_review(
    payload: ReviewCreate,
    service: ReviewsService = Depends(get_reviews_service),
    current_user=Depends(get_current_user),
) -> ReviewRead:
    """Review a completed session."""
    review = await service.submit_review(payload, current_user)
    return ReviewRead.model_validate(review)


@router.get("/my", response_model=Page[ReviewRead])
async def list_my_reviews(
    pagination=Depends(get_pagination_params),
    service: ReviewsService = Depends(get_reviews_service),
    current_user=Depends(get_current_user),
) -> Page[ReviewRead]:
    """List reviews written by current student."""
    items, total = await service.list_my_reviews(current_user, pagination.limit, pagination.offset)
    serialized = [ReviewRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/trainers/{trainer_id}", response_model=Page[ReviewRead])
async def list_trainer_reviews(
    trainer_id: UUID,
    pagination=Depends(get_pagination_params),
    service: ReviewsService = Depends(get_reviews_service),
) -> Page[ReviewRead]:
    """List reviews of a trainer."""
    items, total = await service.list_trainer_reviews(trainer_id, pagination.limit, pagination.offset)
    serialized = [ReviewRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.put("/{review_id}", response_model=ReviewRead)
async def update_review(
    review_id: UUID,
    payload: ReviewUpdate,
    service: ReviewsService = Depends(get_reviews_service),
    current_user=Depends(get_current_user),
) -> ReviewRead:
    """Edit own review."""
    review = await service.update_review(review_id, payload, current_user)
    return ReviewRead.model_validate(review)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: UUID,
    service: ReviewsService = Depends(get_reviews_service),
    current_user=Depends(get_current_user),
) -> Response:
    """Delete a review."""
    await service.delete_review(review_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
