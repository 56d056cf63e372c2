"""
Pydantic schemas for property viewings.
"""
from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from homeview.models.viewing import DEFAULT_DURATION_MINUTES, ViewingStatus

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# ── Request schemas ────────────────────────────────────────────────────────────

class ViewingCreate(BaseModel):
    """Booking request for a viewing slot."""
    property_id: int = Field(..., gt=0)
    visitor_name: str = Field(..., min_length=1, max_length=255)
    visitor_email: EmailStr
    visitor_phone: Optional[str] = Field(None, max_length=50)
    viewing_date: datetime
    viewing_time: str = Field(..., description="24-hour HH:MM")
    duration: int = Field(DEFAULT_DURATION_MINUTES, ge=1, le=480)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("visitor_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Visitor name is required")
        return v

    @field_validator("viewing_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        v = v.strip()
        if not _TIME_RE.match(v):
            raise ValueError("Viewing time must be HH:MM (24-hour)")
        return v


class ViewingUpdate(BaseModel):
    """Visitor-side update of their own viewing."""
    status: Optional[ViewingStatus] = None
    notes: Optional[str] = Field(None, max_length=2000)


class ViewingStatusUpdate(BaseModel):
    status: ViewingStatus
    cancellation_reason: Optional[str] = Field(None, max_length=1000)


class BulkStatusUpdate(BaseModel):
    ids: List[uuid.UUID] = Field(..., min_length=1)
    status: ViewingStatus


# ── Response schemas ───────────────────────────────────────────────────────────

class ViewingOut(BaseModel):
    id: uuid.UUID
    property_id: int
    user_id: Optional[str] = None
    visitor_name: str
    visitor_email: str
    visitor_phone: Optional[str] = None
    viewing_date: datetime
    viewing_time: str
    duration: int
    notes: Optional[str] = None
    status: ViewingStatus
    reminder_sent: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BulkStatusResult(BaseModel):
    success: bool = True
    count: int
    missing: List[uuid.UUID] = []
    rejected: List[uuid.UUID] = []
