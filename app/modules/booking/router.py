"""Booking API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.modules.booking.schemas import BookingCreate, BookingPaymentUpdate, BookingRead
from app.modules.booking.service import BookingService, get_booking_service
from app.modules.identity.service import get_current_user
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> BookingRead:
    """Create booking with pending payment."""
    booking = await service.create_booking(payload, current_user)
    return BookingRead.model_validate(booking)


@router.put("/{booking_id}/payment", response_model=BookingRead)
async def update_booking_payment(
    booking_id: UUID,
    payload: BookingPaymentUpdate,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> BookingRead:
    """Record client-side payment confirmation."""
    booking = await service.mark_payment_status(booking_id, payload, current_user)
    return BookingRead.model_validate(booking)


@router.get("/my", response_model=Page[BookingRead])
async def list_my_bookings(
    pagination=Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> Page[BookingRead]:
    """List bookings for current user."""
    items, total = await service.list_bookings(current_user, pagination.limit, pagination.offset)
    serialized = [BookingRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/trainer/{trainer_id}/paid", response_model=list[BookingRead])
async def list_paid_unscheduled(
    trainer_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> list[BookingRead]:
    """List paid bookings that are not yet part of a session."""
    items = await service.list_paid_unscheduled(trainer_id, current_user)
    return [BookingRead.model_validate(item) for item in items]


@router.get("/{booking_id}", response_model=BookingRead)
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> BookingRead:
    """Return one booking."""
    booking = await service.get_booking(booking_id, current_user)
    return BookingRead.model_validate(booking)
