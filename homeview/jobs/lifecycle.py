"""
Background job wiring: builds the process-wide scheduler at startup,
tears it down at shutdown, and reports its status.
"""
import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from homeview.core.config import Settings, settings as default_settings
from homeview.jobs.scheduler import JobScheduler
from homeview.services.notification_service import NotificationService
from homeview.services.reminder_service import run_viewing_reminder_job

logger = logging.getLogger(__name__)

VIEWING_REMINDER_JOB = "viewing-reminder"


def build_scheduler(
    config: Optional[Settings] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    notifier: Optional[NotificationService] = None,
) -> JobScheduler:
    """Create a scheduler with the application's jobs registered, not started."""
    cfg = config or default_settings
    scheduler = JobScheduler()

    def viewing_reminder_tick() -> None:
        result = run_viewing_reminder_job(session_factory, notifier or NotificationService(cfg))
        if not result.success:
            raise RuntimeError("Viewing reminder scan failed")

    scheduler.register_job(
        VIEWING_REMINDER_JOB,
        cfg.REMINDER_JOB_INTERVAL_SECONDS,
        viewing_reminder_tick,
        timeout=cfg.REMINDER_JOB_TIMEOUT_SECONDS,
    )
    return scheduler


def initialize_scheduler(
    config: Optional[Settings] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    notifier: Optional[NotificationService] = None,
) -> JobScheduler:
    """Build and start the scheduler. Call from inside the running event loop."""
    logger.info("[JOBS] Initializing background jobs...")
    scheduler = build_scheduler(config, session_factory, notifier)
    scheduler.start()
    logger.info("[JOBS] Background jobs initialized successfully")
    return scheduler


def stop_scheduler(scheduler: Optional[JobScheduler]) -> None:
    if scheduler is None or not scheduler.is_started:
        return
    logger.info("[JOBS] Shutting down background jobs...")
    scheduler.stop()
    logger.info("[JOBS] Background jobs shut down successfully")


async def shutdown_scheduler(scheduler: Optional[JobScheduler], timeout: Optional[float] = None) -> bool:
    """
    Stop the timers, then wait for runs already in flight.
    Returns False if some were still running when the timeout expired.
    """
    if scheduler is None:
        return True
    stop_scheduler(scheduler)
    finished = await scheduler.join(timeout)
    if not finished:
        logger.warning(f"[JOBS] Background jobs still running after {timeout}s")
    return finished


def get_scheduler_status(scheduler: Optional[JobScheduler]) -> Dict[str, Any]:
    if scheduler is None:
        return {"is_running": False, "jobs": []}
    return {
        "is_running": scheduler.is_started,
        "jobs": scheduler.get_all_jobs_status(),
    }
