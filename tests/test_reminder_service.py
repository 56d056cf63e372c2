from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from homeview.models.viewing import Viewing, ViewingStatus
from homeview.services.reminder_service import (
    ReminderService,
    compute_reminder_window,
    run_viewing_reminder_job,
)
from homeview.services.viewing_service import ViewingService
from tests.conftest import NOW, booking, in_hours


@pytest.fixture
def viewings(db, notifier):
    return ViewingService(db, notifier)


@pytest.fixture
def reminders(db, notifier):
    return ReminderService(db, notifier)


def book_at(viewings, hours, **overrides):
    when = in_hours(hours)
    return viewings.book_viewing(
        booking(viewing_date=when, viewing_time=when.strftime("%H:%M"), **overrides)
    )


# ── Window ────────────────────────────────────────────────────────────────────

def test_window_is_23_to_25_hours_ahead():
    start, end = compute_reminder_window(NOW)

    assert start - NOW == timedelta(hours=23)
    assert end - NOW == timedelta(hours=25)


@pytest.mark.parametrize("minutes", [0, 1, 59, 61 * 24, 60 * 24 * 365])
def test_window_bounds_hold_for_any_instant(minutes):
    now = NOW + timedelta(minutes=minutes)
    start, end = compute_reminder_window(now)

    assert timedelta(hours=22) < start - now < timedelta(hours=24)
    assert timedelta(hours=24) < end - now < timedelta(hours=26)
    assert end - start == timedelta(hours=2)


# ── Scanner ───────────────────────────────────────────────────────────────────

def test_finds_viewing_24_hours_out(viewings, reminders):
    viewing = book_at(viewings, 24)

    found = reminders.find_viewings_needing_reminders(NOW)

    assert [v.id for v in found] == [viewing.id]


def test_window_edges_are_inclusive(viewings, reminders):
    book_at(viewings, 23)
    book_at(viewings, 25, property_id=43)

    assert len(reminders.find_viewings_needing_reminders(NOW)) == 2


def test_viewing_48_hours_out_is_excluded(viewings, reminders):
    book_at(viewings, 48)

    assert reminders.find_viewings_needing_reminders(NOW) == []


def test_viewing_just_outside_window_is_excluded(viewings, reminders):
    book_at(viewings, 22.9)
    book_at(viewings, 25.1, property_id=43)

    assert reminders.find_viewings_needing_reminders(NOW) == []


def test_only_scheduled_viewings_need_reminders(viewings, reminders):
    confirmed = book_at(viewings, 24)
    viewings.update_status(confirmed.id, ViewingStatus.CONFIRMED)
    cancelled = book_at(viewings, 24, property_id=43)
    viewings.update_status(cancelled.id, ViewingStatus.CANCELLED)

    assert reminders.find_viewings_needing_reminders(NOW) == []


# ── Job ───────────────────────────────────────────────────────────────────────

def test_reminder_sent_once(viewings, reminders, notifier, db):
    viewing = book_at(viewings, 24)

    first = reminders.execute_reminder_job(NOW)
    db.refresh(viewing)

    assert first.success is True
    assert first.reminders_sent == 1
    assert first.errors == []
    assert viewing.reminder_sent is True

    second = reminders.execute_reminder_job(NOW)
    assert second.reminders_sent == 0
    assert len(notifier.reminders) == 1


def test_one_failure_does_not_abort_the_batch(viewings, reminders, notifier, db):
    failing = book_at(viewings, 24, visitor_email="broken@example.com")
    ok = book_at(viewings, 24, property_id=43)
    notifier.fail_for.add("broken@example.com")

    result = reminders.execute_reminder_job(NOW)

    assert result.success is True
    assert result.reminders_sent == 1
    assert [e.viewing_id for e in result.errors] == [failing.id]
    db.refresh(failing)
    db.refresh(ok)
    assert failing.reminder_sent is False
    assert ok.reminder_sent is True


def test_failed_reminder_is_retried_next_run(viewings, reminders, notifier):
    book_at(viewings, 24, visitor_email="flaky@example.com")
    notifier.fail_for.add("flaky@example.com")
    reminders.execute_reminder_job(NOW)

    notifier.fail_for.clear()
    result = reminders.execute_reminder_job(NOW + timedelta(minutes=30))

    assert result.reminders_sent == 1
    assert result.errors == []


def test_notifier_exception_is_recorded_per_viewing(viewings, reminders, notifier):
    viewing = book_at(viewings, 24)
    notifier.raise_on_send = True

    result = reminders.execute_reminder_job(NOW)

    assert result.success is True
    assert result.errors[0].viewing_id == viewing.id
    assert "exploded" in result.errors[0].error


def test_scan_failure_marks_job_unsuccessful(reminders):
    failure = OperationalError("SELECT", {}, Exception("database is down"))
    with patch.object(reminders.store.db, "query", side_effect=failure):
        result = reminders.execute_reminder_job(NOW)

    assert result.success is False
    assert result.reminders_sent == 0


def test_reminder_uses_default_property_details(viewings, reminders, notifier):
    book_at(viewings, 24)

    reminders.execute_reminder_job(NOW)

    assert notifier.reminders[0].property_title == "Property Viewing"
    assert notifier.reminders[0].visitor_name == "Jane Doe"



def test_failed_mark_does_not_poison_later_viewings(viewings, reminders, db):
    first = book_at(viewings, 24)
    second = book_at(viewings, 24.5, property_id=43)
    real_mark = reminders.store.mark_reminder_sent
    attempts = []

    def mark_with_broken_flush(viewing_id):
        if not attempts:
            attempts.append(viewing_id)
            # Same active slot as the first viewing, so the flush fails
            db.add(Viewing(
                property_id=42,
                visitor_name="Dup",
                visitor_email="dup@example.com",
                viewing_date=in_hours(24),
                viewing_time="12:00",
            ))
            db.flush()
        return real_mark(viewing_id)

    with patch.object(reminders.store, "mark_reminder_sent", side_effect=mark_with_broken_flush):
        result = reminders.execute_reminder_job(NOW)

    assert result.success is True
    assert result.reminders_sent == 1
    assert [e.viewing_id for e in result.errors] == [first.id]
    db.refresh(second)
    assert second.reminder_sent is True

# ── Stats ─────────────────────────────────────────────────────────────────────

def test_stats_add_up(viewings, reminders):
    book_at(viewings, 24)
    book_at(viewings, 24, property_id=43)
    book_at(viewings, 24, property_id=44)
    book_at(viewings, 48, property_id=45)

    before = reminders.get_reminder_stats(NOW)
    assert before.total_viewings_in_window == 3
    assert before.reminders_sent == 0
    assert before.reminders_needed == 3

    reminders.execute_reminder_job(NOW)

    after = reminders.get_reminder_stats(NOW)
    assert after.total_viewings_in_window == 3
    assert after.reminders_sent == 3
    assert after.reminders_needed == 0
    assert after.reminders_sent + after.reminders_needed == after.total_viewings_in_window


# ── Scheduler entry point ─────────────────────────────────────────────────────

def test_run_viewing_reminder_job_uses_its_own_session(session_factory, notifier):
    with patch("homeview.services.reminder_service.utcnow", return_value=NOW):
        session = session_factory()
        ViewingService(session, notifier).book_viewing(
            booking(viewing_date=in_hours(24), viewing_time="12:00")
        )
        session.close()

        result = run_viewing_reminder_job(session_factory, notifier)

    assert result.success is True
    assert result.reminders_sent == 1
