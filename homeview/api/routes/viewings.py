"""
Property Viewing Routes

Visitor endpoints:
  POST   /api/viewings/                         book a viewing (JWT)
  GET    /api/viewings/property/{property_id}   viewings for a property
  GET    /api/viewings/mine                     viewings booked by caller (JWT)
  GET    /api/viewings/{id}                     viewing detail
  PATCH  /api/viewings/{id}                     update own status/notes (JWT)
  DELETE /api/viewings/{id}                     delete own viewing (JWT)
"""
from __future__ import annotations

import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from homeview.core.exceptions import (
    ConflictError,
    InvalidStatusTransitionError,
    ViewingNotFoundError,
)
from homeview.core.security import CurrentUser
from homeview.dependencies import get_current_user, get_viewing_service
from homeview.models.viewing import Viewing
from homeview.schemas.viewing import ViewingCreate, ViewingOut, ViewingUpdate
from homeview.services.viewing_service import ViewingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Viewings"])


# ── Helpers ────────────────────────────────────────────────────────────────────

def _get_viewing_or_404(viewing_id: uuid.UUID, svc: ViewingService) -> Viewing:
    try:
        return svc.get_viewing(viewing_id)
    except ViewingNotFoundError:
        raise HTTPException(status_code=404, detail="Viewing not found")


def _get_owned_viewing(
    viewing_id: uuid.UUID,
    user: CurrentUser,
    svc: ViewingService,
) -> Viewing:
    viewing = _get_viewing_or_404(viewing_id, svc)
    if viewing.user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    return viewing


# ── Endpoints ──────────────────────────────────────────────────────────────────

@router.post("/", response_model=ViewingOut, status_code=201)
def book_viewing(
    payload: ViewingCreate,
    user: CurrentUser = Depends(get_current_user),
    svc: ViewingService = Depends(get_viewing_service),
):
    """Book a viewing slot. 409 when the slot is already taken."""
    try:
        return svc.book_viewing(payload, user_id=user.id)
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.get("/property/{property_id}", response_model=List[ViewingOut])
def list_property_viewings(
    property_id: int,
    svc: ViewingService = Depends(get_viewing_service),
):
    return svc.list_by_property(property_id)


@router.get("/mine", response_model=List[ViewingOut])
def list_my_viewings(
    user: CurrentUser = Depends(get_current_user),
    svc: ViewingService = Depends(get_viewing_service),
):
    return svc.list_by_user(user.id)


@router.get("/{viewing_id}", response_model=ViewingOut)
def get_viewing(
    viewing_id: uuid.UUID,
    svc: ViewingService = Depends(get_viewing_service),
):
    return _get_viewing_or_404(viewing_id, svc)


@router.patch("/{viewing_id}", response_model=ViewingOut)
def update_viewing(
    viewing_id: uuid.UUID,
    payload: ViewingUpdate,
    user: CurrentUser = Depends(get_current_user),
    svc: ViewingService = Depends(get_viewing_service),
):
    _get_owned_viewing(viewing_id, user, svc)
    try:
        return svc.update_viewing(viewing_id, status=payload.status, notes=payload.notes)
    except InvalidStatusTransitionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.delete("/{viewing_id}", status_code=204)
def delete_viewing(
    viewing_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    svc: ViewingService = Depends(get_viewing_service),
):
    _get_owned_viewing(viewing_id, user, svc)
    svc.delete_viewing(viewing_id)
