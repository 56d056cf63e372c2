"""
Schemas for background job results and scheduler status.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class ReminderError(BaseModel):
    viewing_id: uuid.UUID
    error: str


class ReminderJobResult(BaseModel):
    success: bool = True
    reminders_sent: int = 0
    errors: List[ReminderError] = []
    timestamp: datetime


class ReminderStats(BaseModel):
    window_start: datetime
    window_end: datetime
    total_viewings_in_window: int
    reminders_sent: int
    reminders_needed: int


class JobStatusOut(BaseModel):
    name: str
    interval_seconds: float
    state: str
    is_running: bool
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    run_count: int = 0
    skipped_runs: int = 0
    last_error: Optional[str] = None


class SchedulerStatusOut(BaseModel):
    is_running: bool
    jobs: List[JobStatusOut] = []
