"""
Viewing Reminder Engine

Sends a reminder email to visitors about 24 hours before their viewing.

The job runs hourly. Each run scans the window [now + 23h, now + 25h], so a
viewing is caught by at least one run even when a run is late or skipped.
Duplicate sends are prevented by the viewing's reminder_sent flag, not by
the width of the window.

Responsibilities:
  • compute_reminder_window          : the scan window for a given instant
  • find_viewings_needing_reminders  : scheduled, un-reminded, in window
  • get_reminder_stats               : sent / needed counts for monitoring
  • execute_reminder_job             : batch send; one failure never aborts the batch
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from homeview.core.config import Settings, settings as default_settings
from homeview.core.exceptions import NotificationError
from homeview.db.base import utcnow
from homeview.models.viewing import Viewing, ViewingStatus
from homeview.repositories.viewing_repository import ViewingRepository
from homeview.schemas.jobs import ReminderError, ReminderJobResult, ReminderStats
from homeview.services.notification_service import NotificationService
from homeview.services.viewing_service import build_viewing_details

logger = logging.getLogger(__name__)

REMINDER_WINDOW_START = timedelta(hours=23)
REMINDER_WINDOW_END = timedelta(hours=25)


def compute_reminder_window(now: datetime) -> Tuple[datetime, datetime]:
    """Return (now + 23h, now + 25h)."""
    return now + REMINDER_WINDOW_START, now + REMINDER_WINDOW_END


class ReminderService:
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

    # ── Scanner ───────────────────────────────────────────────────────────────

    def find_viewings_needing_reminders(self, now: Optional[datetime] = None) -> List[Viewing]:
        window_start, window_end = compute_reminder_window(now or utcnow())
        return self.store.get_viewings_in_date_range(
            window_start,
            window_end,
            status=ViewingStatus.SCHEDULED,
            reminder_sent=False,
        )

    def get_reminder_stats(self, now: Optional[datetime] = None) -> ReminderStats:
        window_start, window_end = compute_reminder_window(now or utcnow())
        in_window = self.store.get_viewings_in_date_range(
            window_start,
            window_end,
            status=ViewingStatus.SCHEDULED,
        )
        sent = sum(1 for v in in_window if v.reminder_sent)

        return ReminderStats(
            window_start=window_start,
            window_end=window_end,
            total_viewings_in_window=len(in_window),
            reminders_sent=sent,
            reminders_needed=len(in_window) - sent,
        )

    # ── Job ───────────────────────────────────────────────────────────────────

    def execute_reminder_job(self, now: Optional[datetime] = None) -> ReminderJobResult:
        """
        Send reminders for every viewing in the window that has not had one.

        success is False only when the scan itself fails; per-viewing failures
        are collected in errors and the batch carries on.
        """
        timestamp = now or utcnow()
        result = ReminderJobResult(timestamp=timestamp)

        try:
            logger.info("[REMINDERS] Starting viewing reminder job...")
            candidates = self.find_viewings_needing_reminders(timestamp)
            logger.info(f"[REMINDERS] Found {len(candidates)} viewings needing reminders")

            for viewing in candidates:
                viewing_id = viewing.id
                try:
                    details = build_viewing_details(viewing, config=self.config)
                    if not self.notifier.send_reminder(details):
                        raise NotificationError("Reminder email was not delivered")

                    if not self.store.mark_reminder_sent(viewing_id):
                        logger.warning(f"[REMINDERS] Viewing {viewing_id} was already marked as reminded")
                    result.reminders_sent += 1
                    logger.info(f"[REMINDERS] Reminder sent for viewing {viewing_id} to {details.visitor_email}")
                except Exception as exc:
                    self.db.rollback()
                    result.errors.append(ReminderError(viewing_id=viewing_id, error=str(exc)))
                    logger.error(f"[REMINDERS] Failed to send reminder for viewing {viewing_id}: {exc}")

            logger.info(
                f"[REMINDERS] Job completed. Sent {result.reminders_sent} reminders "
                f"with {len(result.errors)} errors"
            )
        except Exception as exc:
            result.success = False
            logger.error(f"[REMINDERS] Fatal error in reminder job: {exc}")

        return result


def run_viewing_reminder_job(
    session_factory: Optional[Callable[[], Session]] = None,
    notifier: Optional[NotificationService] = None,
) -> ReminderJobResult:
    """
    Scheduler entry point: one run with its own database session.
    Blocking; the scheduler calls it from a worker thread.
    """
    if session_factory is None:
        from homeview.database import SessionLocal
        session_factory = SessionLocal

    db = session_factory()
    try:
        service = ReminderService(db, notifier or NotificationService())
        return service.execute_reminder_job()
    finally:
        db.close()
