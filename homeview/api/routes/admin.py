"""
Admin Routes - viewing management and background job monitoring.
All endpoints require a token with the admin role.

  GET    /api/admin/viewings/                        list with filters
  PATCH  /api/admin/viewings/{id}/status             change status
  POST   /api/admin/viewings/bulk-status             change status of many
  DELETE /api/admin/viewings/{id}                    delete
  GET    /api/admin/jobs/status                      scheduler status
  GET    /api/admin/jobs/viewing-reminder/stats      reminder window counts
  POST   /api/admin/jobs/viewing-reminder/run        run the reminder job now
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from homeview.core.exceptions import InvalidStatusTransitionError, ViewingNotFoundError
from homeview.dependencies import (
    get_reminder_service,
    get_scheduler,
    get_viewing_service,
    require_admin,
)
from homeview.jobs.lifecycle import VIEWING_REMINDER_JOB, get_scheduler_status
from homeview.jobs.scheduler import JobScheduler
from homeview.models.viewing import ViewingStatus
from homeview.schemas.jobs import ReminderJobResult, ReminderStats, SchedulerStatusOut
from homeview.schemas.viewing import (
    BulkStatusResult,
    BulkStatusUpdate,
    ViewingOut,
    ViewingStatusUpdate,
)
from homeview.services.reminder_service import ReminderService
from homeview.services.viewing_service import ViewingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin"], dependencies=[Depends(require_admin)])


# ── Viewings ───────────────────────────────────────────────────────────────────

@router.get("/viewings/", response_model=List[ViewingOut])
def list_all_viewings(
    status: Optional[ViewingStatus] = Query(None),
    property_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None, max_length=255),
    svc: ViewingService = Depends(get_viewing_service),
):
    return svc.list_all(
        status=status,
        property_id=property_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )


@router.patch("/viewings/{viewing_id}/status", response_model=ViewingOut)
def update_viewing_status(
    viewing_id: uuid.UUID,
    payload: ViewingStatusUpdate,
    svc: ViewingService = Depends(get_viewing_service),
):
    try:
        return svc.update_status(viewing_id, payload.status, payload.cancellation_reason)
    except ViewingNotFoundError:
        raise HTTPException(status_code=404, detail="Viewing not found")
    except InvalidStatusTransitionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/viewings/bulk-status", response_model=BulkStatusResult)
def bulk_update_viewing_status(
    payload: BulkStatusUpdate,
    svc: ViewingService = Depends(get_viewing_service),
):
    updated, missing, rejected = svc.bulk_update_status(payload.ids, payload.status)
    return BulkStatusResult(count=updated, missing=missing, rejected=rejected)


@router.delete("/viewings/{viewing_id}", status_code=204)
def delete_viewing(
    viewing_id: uuid.UUID,
    svc: ViewingService = Depends(get_viewing_service),
):
    try:
        svc.delete_viewing(viewing_id)
    except ViewingNotFoundError:
        raise HTTPException(status_code=404, detail="Viewing not found")


# ── Background jobs ────────────────────────────────────────────────────────────

@router.get("/jobs/status", response_model=SchedulerStatusOut)
def scheduler_status(scheduler: Optional[JobScheduler] = Depends(get_scheduler)):
    return get_scheduler_status(scheduler)


@router.get("/jobs/viewing-reminder/stats", response_model=ReminderStats)
def reminder_stats(svc: ReminderService = Depends(get_reminder_service)):
    return svc.get_reminder_stats()


@router.post("/jobs/viewing-reminder/run", response_model=ReminderJobResult)
def run_reminder_job(
    svc: ReminderService = Depends(get_reminder_service),
    scheduler: Optional[JobScheduler] = Depends(get_scheduler),
):
    """
    Run the reminder job once, outside the schedule.
    409 while a scheduled or manual run of the job is in progress.
    """
    logger.info("[REMINDERS] Manual reminder job run requested")
    if scheduler is None:
        return svc.execute_reminder_job()

    with scheduler.acquire(VIEWING_REMINDER_JOB) as acquired:
        if not acquired:
            raise HTTPException(status_code=409, detail="Viewing reminder job is already running")
        return svc.execute_reminder_job()
