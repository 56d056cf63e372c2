"""
Viewing Model - Property Viewing Management
"""
from datetime import date, datetime
from typing import Optional
import uuid
import enum

from sqlalchemy import Boolean, Date, DateTime, Enum, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, validates

from homeview.db.base import Base, TimestampMixin, as_utc_naive


class ViewingStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Allowed status changes; cancelled and completed are terminal
STATUS_TRANSITIONS = {
    ViewingStatus.SCHEDULED: {
        ViewingStatus.CONFIRMED,
        ViewingStatus.COMPLETED,
        ViewingStatus.CANCELLED,
    },
    ViewingStatus.CONFIRMED: {
        ViewingStatus.COMPLETED,
        ViewingStatus.CANCELLED,
    },
    ViewingStatus.COMPLETED: set(),
    ViewingStatus.CANCELLED: set(),
}

DEFAULT_DURATION_MINUTES = 30

_ACTIVE_SLOT = text("status != 'cancelled'")


class Viewing(TimestampMixin, Base):
    """
    Viewing model for property showing appointments.

    At most one non-cancelled viewing may hold a (property, day, time) slot;
    the partial unique index enforces it at the storage layer.
    """
    __tablename__ = "viewings"
    __table_args__ = (
        Index(
            "uq_viewings_active_slot",
            "property_id",
            "slot_date",
            "viewing_time",
            unique=True,
            sqlite_where=_ACTIVE_SLOT,
            postgresql_where=_ACTIVE_SLOT,
        ),
        Index("ix_viewings_status_date", "status", "viewing_date"),
    )

    # Primary key
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Property being viewed (owned by the catalog)
    property_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Account that booked the viewing, if any
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    # Visitor details
    visitor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    visitor_email: Mapped[str] = mapped_column(String(320), nullable=False)
    visitor_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Viewing details
    viewing_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    slot_date: Mapped[date] = mapped_column(Date, nullable=False)
    viewing_time: Mapped[str] = mapped_column(String(5), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_DURATION_MINUTES)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[ViewingStatus] = mapped_column(
        Enum(
            ViewingStatus,
            name="viewing_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=ViewingStatus.SCHEDULED,
        nullable=False,
        index=True,
    )
    reminder_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @validates("viewing_date")
    def _sync_slot_date(self, key, value):
        value = as_utc_naive(value)
        self.slot_date = value.date()
        return value

    def __repr__(self) -> str:
        return (
            f"<Viewing {self.id} property={self.property_id} "
            f"{self.slot_date} {self.viewing_time} {self.status}>"
        )
