"""
Viewing Service
Booking with slot-conflict detection, status lifecycle, and the
notifications that go with them.

Notification failures never fail the primary operation: a booking or a
status change succeeds whether or not the email went out.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from homeview.core.config import Settings, settings as default_settings
from homeview.core.exceptions import (
    ConflictError,
    InvalidStatusTransitionError,
    ViewingNotFoundError,
)
from homeview.db.base import utc_day
from homeview.models.viewing import (
    DEFAULT_DURATION_MINUTES,
    STATUS_TRANSITIONS,
    Viewing,
    ViewingStatus,
)
from homeview.repositories.viewing_repository import ViewingRepository
from homeview.schemas.viewing import ViewingCreate
from homeview.services.notification_service import NotificationService, ViewingDetails

logger = logging.getLogger(__name__)


@dataclass
class PropertyDetails:
    """Catalog data the caller passes along for notification content."""
    title: str
    address: str = ""
    agent_name: Optional[str] = None
    agent_phone: Optional[str] = None
    agent_email: Optional[str] = None


def build_viewing_details(
    viewing: Viewing,
    property_details: Optional[PropertyDetails] = None,
    config: Optional[Settings] = None,
) -> ViewingDetails:
    """Assemble email content for a viewing, falling back to configured defaults."""
    cfg = config or default_settings
    prop = property_details or PropertyDetails(title=cfg.DEFAULT_PROPERTY_TITLE)
    return ViewingDetails(
        visitor_name=viewing.visitor_name,
        visitor_email=viewing.visitor_email,
        property_title=prop.title,
        property_address=prop.address,
        viewing_date=viewing.viewing_date,
        viewing_time=viewing.viewing_time,
        duration=viewing.duration,
        agent_name=prop.agent_name or cfg.DEFAULT_AGENT_NAME,
        agent_phone=prop.agent_phone or cfg.DEFAULT_AGENT_PHONE,
        agent_email=prop.agent_email or cfg.DEFAULT_AGENT_EMAIL,
        notes=viewing.notes,
    )


class ViewingService:
    def __init__(
        self,
        db: Session,
        notifier: NotificationService,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.store = ViewingRepository(db)
        self.notifier = notifier
        self.config = config or default_settings

    # ── Conflict detection ────────────────────────────────────────────────────

    def has_conflict(
        self,
        property_id: int,
        viewing_date: datetime,
        viewing_time: str,
        duration: int = DEFAULT_DURATION_MINUTES,
    ) -> bool:
        """
        True when a non-cancelled viewing already holds the exact slot.

        A slot is the property, the UTC calendar day and the HH:MM string.
        Overlapping but unequal times (09:00 for 45 minutes vs 09:15) are not
        conflicts; duration is accepted for callers but not compared.
        """
        day = utc_day(viewing_date)
        for existing in self.store.get_viewings_by_property(property_id):
            if utc_day(existing.viewing_date) != day:
                continue
            if existing.status == ViewingStatus.CANCELLED:
                continue
            if existing.viewing_time == viewing_time:
                return True
        return False

    # ── Booking ───────────────────────────────────────────────────────────────

    def book_viewing(
        self,
        request: ViewingCreate,
        property_details: Optional[PropertyDetails] = None,
        user_id: Optional[str] = None,
    ) -> Viewing:
        """
        Book a viewing slot.

        Raises:
            ConflictError: the slot is already taken, either found by the
                check or rejected by the unique index on insert.
        """
        if self.has_conflict(
            request.property_id,
            request.viewing_date,
            request.viewing_time,
            request.duration,
        ):
            logger.info(
                f"[VIEWINGS] Slot conflict for property {request.property_id} "
                f"on {utc_day(request.viewing_date)} at {request.viewing_time}"
            )
            raise ConflictError()

        viewing = self.store.create_viewing({
            "property_id": request.property_id,
            "user_id": user_id,
            "visitor_name": request.visitor_name,
            "visitor_email": str(request.visitor_email),
            "visitor_phone": request.visitor_phone,
            "viewing_date": request.viewing_date,
            "viewing_time": request.viewing_time,
            "duration": request.duration,
            "notes": request.notes,
        })
        logger.info(
            f"[VIEWINGS] Booked viewing {viewing.id} for property {viewing.property_id} "
            f"on {viewing.slot_date} at {viewing.viewing_time}"
        )

        self._notify_confirmation(viewing, property_details)
        return viewing

    def _notify_confirmation(
        self,
        viewing: Viewing,
        property_details: Optional[PropertyDetails],
    ) -> None:
        try:
            details = build_viewing_details(viewing, property_details, self.config)
            if not self.notifier.send_confirmation(details):
                logger.warning(f"[VIEWINGS] Confirmation email not delivered for viewing {viewing.id}")
        except Exception as exc:
            logger.error(f"[VIEWINGS] Failed to send confirmation for viewing {viewing.id}: {exc}")

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get_viewing(self, viewing_id: uuid.UUID) -> Viewing:
        viewing = self.store.get_viewing(viewing_id)
        if viewing is None:
            raise ViewingNotFoundError(viewing_id)
        return viewing

    def list_by_property(self, property_id: int) -> List[Viewing]:
        return self.store.get_viewings_by_property(property_id)

    def list_by_user(self, user_id: str) -> List[Viewing]:
        return self.store.get_viewings_by_user(user_id)

    def list_all(
        self,
        status: Optional[ViewingStatus] = None,
        property_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> List[Viewing]:
        return self.store.search_viewings(
            status=status,
            property_id=property_id,
            start_date=start_date,
            end_date=end_date,
            search=search,
        )

    # ── Status lifecycle ──────────────────────────────────────────────────────

    def update_status(
        self,
        viewing_id: uuid.UUID,
        status: ViewingStatus,
        cancellation_reason: Optional[str] = None,
    ) -> Viewing:
        """
        Move a viewing to a new status, enforcing the lifecycle.

        Setting the current status again is a no-op. Cancelling sends a
        best-effort cancellation email.
        """
        viewing = self.get_viewing(viewing_id)
        current = viewing.status
        if status == current:
            return viewing
        if status not in STATUS_TRANSITIONS[current]:
            raise InvalidStatusTransitionError(current.value, status.value)

        viewing = self.store.update_status(viewing_id, status)
        logger.info(f"[VIEWINGS] Viewing {viewing_id} status {current.value} -> {status.value}")

        if status == ViewingStatus.CANCELLED:
            if cancellation_reason:
                logger.info(f"[VIEWINGS] Viewing {viewing_id} cancelled: {cancellation_reason}")
            self._notify_cancellation(viewing)
        return viewing

    def _notify_cancellation(self, viewing: Viewing) -> None:
        try:
            sent = self.notifier.send_cancellation(
                viewing.visitor_email,
                viewing.visitor_name,
                self.config.DEFAULT_PROPERTY_TITLE,
                viewing.viewing_date,
            )
            if not sent:
                logger.warning(f"[VIEWINGS] Cancellation email not delivered for viewing {viewing.id}")
        except Exception as exc:
            logger.error(f"[VIEWINGS] Failed to send cancellation for viewing {viewing.id}: {exc}")

    def bulk_update_status(
        self,
        viewing_ids: List[uuid.UUID],
        status: ViewingStatus,
    ) -> Tuple[int, List[uuid.UUID], List[uuid.UUID]]:
        """
        Apply a status to many viewings.
        Returns (updated_count, missing_ids, rejected_ids); rejected ids are
        those whose current status cannot move to *status*.
        """
        updated = 0
        missing: List[uuid.UUID] = []
        rejected: List[uuid.UUID] = []

        for viewing_id in viewing_ids:
            try:
                self.update_status(viewing_id, status)
                updated += 1
            except ViewingNotFoundError:
                missing.append(viewing_id)
            except InvalidStatusTransitionError as exc:
                logger.info(f"[VIEWINGS] Bulk update skipped {viewing_id}: {exc}")
                rejected.append(viewing_id)

        return updated, missing, rejected

    # ── Other updates ─────────────────────────────────────────────────────────

    def update_viewing(
        self,
        viewing_id: uuid.UUID,
        status: Optional[ViewingStatus] = None,
        notes: Optional[str] = None,
    ) -> Viewing:
        viewing = self.get_viewing(viewing_id)
        if status is not None:
            viewing = self.update_status(viewing_id, status)
        if notes is not None:
            viewing = self.store.update_viewing(viewing, notes=notes)
        return viewing

    def delete_viewing(self, viewing_id: uuid.UUID) -> None:
        viewing = self.get_viewing(viewing_id)
        self.store.delete_viewing(viewing)
        logger.info(f"[VIEWINGS] Deleted viewing {viewing_id}")
