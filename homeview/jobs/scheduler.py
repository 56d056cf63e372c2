"""
Job Scheduler
Runs registered jobs on a fixed interval inside the asyncio event loop.

Each job is a small state machine {idle, running}. A tick that finds its
job still running is skipped, so executions of one job never overlap.
Different jobs run independently of each other.

Jobs may be coroutine functions or plain callables; plain callables run in
a worker thread so blocking database work does not stall the event loop.
A worker thread cannot be interrupted, so a plain job that times out stays
running until its thread returns.
"""
from __future__ import annotations

import asyncio
import enum
import functools
import inspect
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Set, Union

from homeview.db.base import utcnow

logger = logging.getLogger(__name__)

JobCallable = Callable[[], Union[Awaitable[Any], Any]]


class JobState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class ScheduledJob:
    name: str
    interval_seconds: float
    execute: JobCallable
    timeout: Optional[float] = None
    state: JobState = JobState.IDLE
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    run_count: int = 0
    skipped_runs: int = 0
    last_error: Optional[str] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def is_running(self) -> bool:
        return self.state == JobState.RUNNING

    def try_acquire(self) -> bool:
        """Atomically move idle -> running. False if already running."""
        with self._lock:
            if self.state == JobState.RUNNING:
                return False
            self.state = JobState.RUNNING
            return True

    def release(self) -> None:
        with self._lock:
            self.state = JobState.IDLE

    def snapshot(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "state": self.state.value,
            "is_running": self.is_running,
            "last_run": self.last_run,
            "next_run": self.next_run,
            "run_count": self.run_count,
            "skipped_runs": self.skipped_runs,
            "last_error": self.last_error,
        }


class JobScheduler:
    """Cooperative recurring-task runner. One instance per process."""

    def __init__(self):
        self._jobs: Dict[str, ScheduledJob] = {}
        self._timers: Dict[str, asyncio.Task] = {}
        self._inflight: Set[asyncio.Task] = set()
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    # ── Registration ──────────────────────────────────────────────────────────

    def register_job(
        self,
        name: str,
        interval_seconds: float,
        execute: JobCallable,
        timeout: Optional[float] = None,
    ) -> ScheduledJob:
        """Add a job definition. It does not run until start()."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if self._started:
            raise RuntimeError("Cannot register jobs while the scheduler is running")

        job = ScheduledJob(
            name=name,
            interval_seconds=interval_seconds,
            execute=execute,
            timeout=timeout,
        )
        self._jobs[name] = job
        logger.info(f"[SCHEDULER] Registered job: {name} (interval: {interval_seconds}s)")
        return job

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """
        Run every registered job once now, then on its interval.
        Must be called from inside a running event loop.
        """
        if self._started:
            logger.warning("[SCHEDULER] Already started")
            return

        loop = asyncio.get_running_loop()
        self._started = True
        logger.info("[SCHEDULER] Starting job scheduler...")

        for name, job in self._jobs.items():
            self._timers[name] = loop.create_task(self._timer(job), name=f"scheduler:{name}")

        logger.info(f"[SCHEDULER] Started {len(self._jobs)} jobs")

    def stop(self) -> None:
        """Cancel all timers. Executions already in flight are left to finish."""
        if not self._started:
            logger.warning("[SCHEDULER] Not started")
            return

        logger.info("[SCHEDULER] Stopping job scheduler...")
        for name, timer in self._timers.items():
            timer.cancel()
            logger.info(f"[SCHEDULER] Stopped job: {name}")

        self._timers.clear()
        self._started = False

    async def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for in-flight executions to finish, without cancelling them.
        Returns False if some were still running when the timeout expired.
        """
        pending = {task for task in self._inflight if not task.done()}
        if not pending:
            return True
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        return not still_pending

    # ── Execution ─────────────────────────────────────────────────────────────

    async def _timer(self, job: ScheduledJob) -> None:
        while True:
            task = asyncio.create_task(self.run_job(job.name), name=f"job:{job.name}")
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            await asyncio.sleep(job.interval_seconds)

    async def run_job(self, name: str) -> bool:
        """
        Execute one tick of *name*.

        Returns False when the tick was skipped because the job is still
        running. Job errors are logged and recorded, never raised.
        """
        job = self._job(name)

        if not job.try_acquire():
            job.skipped_runs += 1
            logger.info(f"[SCHEDULER] Job {name} is already running, skipping...")
            return False

        now = utcnow()
        job.last_run = now
        job.next_run = now + timedelta(seconds=job.interval_seconds)
        job.run_count += 1

        logger.info(f"[SCHEDULER] Executing job: {name}")
        work = self._spawn(job)
        detached = False
        try:
            if job.timeout:
                await asyncio.wait_for(asyncio.shield(work), job.timeout)
            else:
                await work
            job.last_error = None
            logger.info(f"[SCHEDULER] Job {name} completed successfully")
        except asyncio.TimeoutError as exc:
            if work.done():
                # The job raised TimeoutError itself
                self._record_failure(job, exc)
            else:
                job.last_error = f"Timed out after {job.timeout}s"
                logger.error(f"[SCHEDULER] Job {name} timed out after {job.timeout}s")
                if self._runs_in_thread(job):
                    # Stay RUNNING until the worker thread returns
                    detached = True
                    work.add_done_callback(functools.partial(self._finish_detached, job))
                else:
                    work.cancel()
        except asyncio.CancelledError:
            if self._runs_in_thread(job):
                detached = True
                work.add_done_callback(functools.partial(self._finish_detached, job))
            else:
                work.cancel()
            raise
        except Exception as exc:
            self._record_failure(job, exc)
        finally:
            if not detached:
                job.release()

        return True

    @contextmanager
    def acquire(self, name: str) -> Iterator[bool]:
        """
        Hold *name* in the running state for an out-of-schedule run.

        Yields False without holding anything when the job is already
        running. Scheduled ticks that land while it is held are skipped.
        """
        job = self._job(name)
        if not job.try_acquire():
            logger.info(f"[SCHEDULER] Job {name} is already running, refusing manual run")
            yield False
            return
        logger.info(f"[SCHEDULER] Job {name} held for a manual run")
        try:
            yield True
        finally:
            job.release()

    def _job(self, name: str) -> ScheduledJob:
        job = self._jobs.get(name)
        if job is None:
            raise KeyError(f"Unknown job: {name}")
        return job

    @staticmethod
    def _runs_in_thread(job: ScheduledJob) -> bool:
        return not inspect.iscoroutinefunction(job.execute)

    def _spawn(self, job: ScheduledJob) -> asyncio.Task:
        if self._runs_in_thread(job):
            call = asyncio.to_thread(job.execute)
        else:
            call = job.execute()
        work = asyncio.ensure_future(call)
        self._inflight.add(work)
        work.add_done_callback(self._inflight.discard)
        return work

    @staticmethod
    def _record_failure(job: ScheduledJob, exc: BaseException) -> None:
        job.last_error = str(exc) or exc.__class__.__name__
        logger.error(f"[SCHEDULER] Job {job.name} failed: {exc}", exc_info=exc)

    @staticmethod
    def _finish_detached(job: ScheduledJob, work: asyncio.Future) -> None:
        if not work.cancelled() and work.exception() is not None:
            logger.error(f"[SCHEDULER] Abandoned run of {job.name} failed in background: {work.exception()}")
        else:
            logger.info(f"[SCHEDULER] Abandoned run of {job.name} finished in background")
        job.release()

    # ── Status ────────────────────────────────────────────────────────────────

    def get_job_status(self, name: str) -> Optional[Dict[str, Any]]:
        job = self._jobs.get(name)
        if job is None:
            return None
        return job.snapshot()

    def get_all_jobs_status(self) -> List[Dict[str, Any]]:
        return [job.snapshot() for job in self._jobs.values()]
