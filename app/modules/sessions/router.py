"""Sessions API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from app.modules.identity.service import get_current_user
from app.modules.sessions.schemas import SessionCreate, SessionRead, SessionTransitionRequest, SessionUpdate
from app.modules.sessions.service import SessionsService, get_sessions_service
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreate,
    service: SessionsService = Depends(get_sessions_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    """Create session from paid bookings."""
    lesson_session = await service.create_session(payload, current_user)
    return SessionRead.model_validate(lesson_session)


@router.get("/my", response_model=Page[SessionRead])
async def list_my_sessions(
    pagination=Depends(get_pagination_params),
    service: SessionsService = Depends(get_sessions_service),
    current_user=Depends(get_current_user),
) -> Page[SessionRead]:
    """List sessions for current user."""
    items, total = await service.list_sessions(current_user, pagination.limit, pagination.offset)
    serialized = [SessionRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{session_id}", response_model=SessionRead)
async def get_session(
    session_id: UUID,
    service: SessionsService = Depends(get_sessions_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    """Return one session."""
    lesson_session = await service.get_session(session_id, current_user)
    return SessionRead.model_validate(lesson_session)


@router.post("/{session_id}/status", response_model=SessionRead)
async def transition_session(
    session_id: UUID,
    payload: SessionTransitionRequest,
    service: SessionsService = Depends(get_sessions_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    """Start or complete a session."""
    lesson_session = await service.transition(session_id, payload.status, current_user)
    return SessionRead.model_validate(lesson_session)


@router.patch("/{session_id}", response_model=SessionRead)
async def update_session(
    session_id: UUID,
    payload: SessionUpdate,
    service: SessionsService = Depends(get_sessions_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    """Edit a scheduled session."""
    lesson_session = await service.update_session(session_id, payload, current_user)
    return SessionRead.model_validate(lesson_session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: UUID,
    service: SessionsService = Depends(get_sessions_service),
    current_user=Depends(get_current_user),
) -> Response:
    """Cancel a scheduled session and release its bookings."""
    await service.delete_session(session_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
