"""Viewing repository - Database operations for property viewings"""

import functools
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from homeview.core.exceptions import ConflictError, StoreUnavailableError
from homeview.db.base import as_utc_naive, utcnow
from homeview.models.viewing import Viewing, ViewingStatus

logger = logging.getLogger(__name__)


def _store_call(method):
    """Translate connectivity failures into StoreUnavailableError."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except OperationalError as exc:
            self.db.rollback()
            logger.error(f"[VIEWINGS] Store unavailable in {method.__name__}: {exc}")
            raise StoreUnavailableError(str(exc.orig or exc)) from exc

    return wrapper


class ViewingRepository:
    """Repository for viewing database operations"""

    def __init__(self, db: Session):
        self.db = db

    # ── Reads ─────────────────────────────────────────────────────────────────

    @_store_call
    def get_viewing(self, viewing_id: uuid.UUID) -> Optional[Viewing]:
        return self.db.query(Viewing).filter(Viewing.id == viewing_id).first()

    @_store_call
    def get_viewings_by_property(self, property_id: int) -> List[Viewing]:
        return (
            self.db.query(Viewing)
            .filter(Viewing.property_id == property_id)
            .order_by(Viewing.viewing_date)
            .all()
        )

    @_store_call
    def get_viewings_by_user(self, user_id: str) -> List[Viewing]:
        return (
            self.db.query(Viewing)
            .filter(Viewing.user_id == user_id)
            .order_by(Viewing.viewing_date)
            .all()
        )

    @_store_call
    def get_viewings_in_date_range(
        self,
        start: datetime,
        end: datetime,
        status: Optional[ViewingStatus] = None,
        reminder_sent: Optional[bool] = None,
    ) -> List[Viewing]:
        """Viewings whose viewing_date falls in [start, end], both ends inclusive."""
        query = self.db.query(Viewing).filter(
            Viewing.viewing_date >= as_utc_naive(start),
            Viewing.viewing_date <= as_utc_naive(end),
        )
        if status is not None:
            query = query.filter(Viewing.status == status)
        if reminder_sent is not None:
            query = query.filter(Viewing.reminder_sent.is_(reminder_sent))
        return query.order_by(Viewing.viewing_date).all()

    @_store_call
    def search_viewings(
        self,
        status: Optional[ViewingStatus] = None,
        property_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> List[Viewing]:
        """Admin listing with optional filters, newest viewing date first."""
        query = self.db.query(Viewing)

        if status is not None:
            query = query.filter(Viewing.status == status)
        if property_id is not None:
            query = query.filter(Viewing.property_id == property_id)
        if start_date is not None:
            query = query.filter(Viewing.viewing_date >= as_utc_naive(start_date))
        if end_date is not None:
            query = query.filter(Viewing.viewing_date <= as_utc_naive(end_date))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Viewing.visitor_name.ilike(pattern),
                    Viewing.visitor_email.ilike(pattern),
                    Viewing.visitor_phone.ilike(pattern),
                )
            )

        return query.order_by(Viewing.viewing_date.desc()).all()

    # ── Writes ────────────────────────────────────────────────────────────────

    @_store_call
    def create_viewing(self, data: Dict[str, Any]) -> Viewing:
        """
        Insert a new scheduled viewing.

        Raises ConflictError when the active-slot unique index rejects the row,
        which happens when a concurrent booking won the same slot.
        """
        viewing = Viewing(
            **data,
            status=ViewingStatus.SCHEDULED,
            reminder_sent=False,
        )
        self.db.add(viewing)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.info(
                f"[VIEWINGS] Slot taken at insert for property {data.get('property_id')}: {exc.orig}"
            )
            raise ConflictError() from exc
        self.db.refresh(viewing)
        return viewing

    @_store_call
    def mark_reminder_sent(self, viewing_id: uuid.UUID) -> bool:
        """
        Set reminder_sent on a viewing. Only flips false -> true.
        Returns False when the flag was already set or the viewing is gone.
        """
        updated = (
            self.db.query(Viewing)
            .filter(Viewing.id == viewing_id, Viewing.reminder_sent.is_(False))
            .update(
                {Viewing.reminder_sent: True, Viewing.updated_at: utcnow()},
                synchronize_session="fetch",
            )
        )
        self.db.commit()
        return updated > 0

    @_store_call
    def update_status(self, viewing_id: uuid.UUID, status: ViewingStatus) -> Optional[Viewing]:
        viewing = self.get_viewing(viewing_id)
        if viewing is None:
            return None
        viewing.status = status
        self.db.commit()
        self.db.refresh(viewing)
        return viewing

    @_store_call
    def update_viewing(self, viewing: Viewing, **updates) -> Viewing:
        """Update a viewing with provided fields; None values are ignored."""
        for key, value in updates.items():
            if value is not None and hasattr(viewing, key):
                setattr(viewing, key, value)
        self.db.commit()
        self.db.refresh(viewing)
        return viewing

    @_store_call
    def delete_viewing(self, viewing: Viewing) -> None:
        self.db.delete(viewing)
        self.db.commit()
