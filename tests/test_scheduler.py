import asyncio
import threading
import time

import pytest

from homeview.jobs.lifecycle import (
    VIEWING_REMINDER_JOB,
    build_scheduler,
    get_scheduler_status,
    shutdown_scheduler,
    stop_scheduler,
)
from homeview.jobs.scheduler import JobScheduler, JobState


def test_register_rejects_non_positive_interval():
    scheduler = JobScheduler()

    with pytest.raises(ValueError):
        scheduler.register_job("bad", 0, lambda: None)


def test_registered_job_is_idle_until_started():
    scheduler = JobScheduler()
    scheduler.register_job("noop", 60, lambda: None)

    status = scheduler.get_job_status("noop")
    assert status["state"] == JobState.IDLE.value
    assert status["is_running"] is False
    assert status["run_count"] == 0
    assert scheduler.get_job_status("missing") is None


def test_stop_before_start_only_warns(caplog):
    scheduler = JobScheduler()

    scheduler.stop()

    assert "Not started" in caplog.text
    assert scheduler.is_started is False


@pytest.mark.asyncio
async def test_register_while_running_is_refused():
    scheduler = JobScheduler()
    scheduler.register_job("noop", 60, lambda: None)
    scheduler.start()
    try:
        with pytest.raises(RuntimeError):
            scheduler.register_job("late", 60, lambda: None)
    finally:
        scheduler.stop()


@pytest.mark.asyncio
async def test_start_runs_each_job_immediately():
    calls = []

    async def job():
        calls.append(1)

    scheduler = JobScheduler()
    scheduler.register_job("tick", 60, job)
    scheduler.start()
    await asyncio.sleep(0.05)
    scheduler.stop()

    assert calls == [1]
    assert scheduler.get_job_status("tick")["run_count"] == 1


@pytest.mark.asyncio
async def test_start_twice_only_warns(caplog):
    scheduler = JobScheduler()
    scheduler.register_job("noop", 60, lambda: None)
    scheduler.start()
    scheduler.start()
    scheduler.stop()

    assert "Already started" in caplog.text


@pytest.mark.asyncio
async def test_slow_job_never_overlaps_itself():
    started = []
    concurrent = 0
    max_concurrent = 0

    async def slow():
        nonlocal concurrent, max_concurrent
        started.append(time.monotonic())
        concurrent += 1
        max_concurrent = max(max_concurrent, concurrent)
        await asyncio.sleep(0.5)
        concurrent -= 1

    scheduler = JobScheduler()
    scheduler.register_job("slow", 0.1, slow)
    scheduler.start()
    await asyncio.sleep(0.3)

    status = scheduler.get_job_status("slow")
    assert len(started) == 1
    assert status["is_running"] is True
    assert status["skipped_runs"] >= 1

    scheduler.stop()
    assert await scheduler.join(timeout=2)
    assert max_concurrent == 1


@pytest.mark.asyncio
async def test_run_job_skips_when_already_running():
    release = asyncio.Event()

    async def blocking():
        await release.wait()

    scheduler = JobScheduler()
    scheduler.register_job("blocking", 60, blocking)

    first = asyncio.create_task(scheduler.run_job("blocking"))
    await asyncio.sleep(0)
    assert await scheduler.run_job("blocking") is False

    release.set()
    assert await first is True
    status = scheduler.get_job_status("blocking")
    assert status["run_count"] == 1
    assert status["skipped_runs"] == 1
    assert status["state"] == JobState.IDLE.value


@pytest.mark.asyncio
async def test_run_job_unknown_name_raises():
    with pytest.raises(KeyError):
        await JobScheduler().run_job("nope")


@pytest.mark.asyncio
async def test_failing_job_is_recorded_and_scheduler_survives():
    attempts = []

    async def boom():
        attempts.append(1)
        raise RuntimeError("kaboom")

    scheduler = JobScheduler()
    scheduler.register_job("boom", 60, boom)

    assert await scheduler.run_job("boom") is True
    assert await scheduler.run_job("boom") is True

    status = scheduler.get_job_status("boom")
    assert len(attempts) == 2
    assert status["last_error"] == "kaboom"
    assert status["is_running"] is False


@pytest.mark.asyncio
async def test_success_clears_previous_error():
    fail = True

    async def flaky():
        if fail:
            raise RuntimeError("first run fails")

    scheduler = JobScheduler()
    scheduler.register_job("flaky", 60, flaky)
    await scheduler.run_job("flaky")
    fail = False
    await scheduler.run_job("flaky")

    assert scheduler.get_job_status("flaky")["last_error"] is None


@pytest.mark.asyncio
async def test_job_timeout_frees_the_job():
    async def hang():
        await asyncio.sleep(10)

    scheduler = JobScheduler()
    scheduler.register_job("hang", 60, hang, timeout=0.05)

    assert await scheduler.run_job("hang") is True

    status = scheduler.get_job_status("hang")
    assert "Timed out" in status["last_error"]
    assert status["state"] == JobState.IDLE.value


@pytest.mark.asyncio
async def test_sync_job_runs_in_worker_thread():
    seen = []

    def blocking():
        seen.append(threading.current_thread() is threading.main_thread())

    scheduler = JobScheduler()
    scheduler.register_job("sync", 60, blocking)
    await scheduler.run_job("sync")

    assert seen == [False]


@pytest.mark.asyncio
async def test_jobs_run_independently():
    release = asyncio.Event()
    fast_calls = []

    async def slow():
        await release.wait()

    async def fast():
        fast_calls.append(1)

    scheduler = JobScheduler()
    scheduler.register_job("slow", 60, slow)
    scheduler.register_job("fast", 60, fast)

    slow_task = asyncio.create_task(scheduler.run_job("slow"))
    await asyncio.sleep(0)
    assert await scheduler.run_job("fast") is True
    assert fast_calls == [1]

    release.set()
    await slow_task


@pytest.mark.asyncio
async def test_timed_out_sync_job_never_overlaps_itself():
    lock = threading.Lock()
    active = 0
    peak = 0

    def slow():
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.6)
        with lock:
            active -= 1

    scheduler = JobScheduler()
    scheduler.register_job("slow-sync", 0.2, slow, timeout=0.1)
    scheduler.start()
    await asyncio.sleep(0.5)

    status = scheduler.get_job_status("slow-sync")
    assert status["is_running"] is True
    assert "Timed out" in status["last_error"]
    assert status["skipped_runs"] >= 1

    scheduler.stop()
    assert await scheduler.join(timeout=2)
    await asyncio.sleep(0)
    assert peak == 1
    assert scheduler.get_job_status("slow-sync")["state"] == JobState.IDLE.value


@pytest.mark.asyncio
async def test_timed_out_sync_job_is_held_until_its_thread_returns():
    finish = threading.Event()

    def blocking():
        finish.wait(5)

    scheduler = JobScheduler()
    scheduler.register_job("blocking", 60, blocking, timeout=0.05)

    assert await scheduler.run_job("blocking") is True
    assert scheduler.get_job_status("blocking")["is_running"] is True
    assert await scheduler.run_job("blocking") is False

    finish.set()
    assert await scheduler.join(timeout=2)
    await asyncio.sleep(0)
    assert scheduler.get_job_status("blocking")["is_running"] is False
    assert await scheduler.run_job("blocking") is True


@pytest.mark.asyncio
async def test_manual_hold_makes_scheduled_tick_skip():
    calls = []

    async def tick():
        calls.append(1)

    scheduler = JobScheduler()
    scheduler.register_job("tick", 60, tick)

    with scheduler.acquire("tick") as acquired:
        assert acquired is True
        assert await scheduler.run_job("tick") is False
        with scheduler.acquire("tick") as again:
            assert again is False

    assert await scheduler.run_job("tick") is True
    assert calls == [1]


def test_acquire_unknown_job_raises():
    with pytest.raises(KeyError):
        with JobScheduler().acquire("nope"):
            pass


@pytest.mark.asyncio
async def test_shutdown_waits_for_in_flight_run():
    finished = []

    def slow():
        time.sleep(0.2)
        finished.append(1)

    scheduler = JobScheduler()
    scheduler.register_job("slow", 60, slow)
    scheduler.start()
    await asyncio.sleep(0.05)

    assert await shutdown_scheduler(scheduler, timeout=2) is True
    assert finished == [1]
    assert scheduler.is_started is False


@pytest.mark.asyncio
async def test_shutdown_without_scheduler():
    assert await shutdown_scheduler(None) is True

# ── Application wiring ────────────────────────────────────────────────────────

def test_build_scheduler_registers_reminder_job(session_factory, notifier):
    scheduler = build_scheduler(session_factory=session_factory, notifier=notifier)

    status = get_scheduler_status(scheduler)
    assert status["is_running"] is False
    assert [job["name"] for job in status["jobs"]] == [VIEWING_REMINDER_JOB]
    assert status["jobs"][0]["interval_seconds"] == 3600.0


def test_status_without_scheduler():
    assert get_scheduler_status(None) == {"is_running": False, "jobs": []}
    stop_scheduler(None)


@pytest.mark.asyncio
async def test_reminder_job_tick_runs_against_the_store(session_factory, notifier):
    scheduler = build_scheduler(session_factory=session_factory, notifier=notifier)

    assert await scheduler.run_job(VIEWING_REMINDER_JOB) is True

    status = scheduler.get_job_status(VIEWING_REMINDER_JOB)
    assert status["run_count"] == 1
    assert status["last_error"] is None
