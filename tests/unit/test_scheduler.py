"""Tests for the worker scheduler."""

import asyncio
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from unittest.mock import AsyncMock

from lexdraft.queue import JobOptions, JobState
from lexdraft.workers import WorkerScheduler


async def wait_until(predicate, timeout=3.0):
    """Poll an async predicate until it holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not await predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def make_scheduler(registry, processor, **options):
    options.setdefault("concurrency", 2)
    options.setdefault("poll_interval", 0.01)
    options.setdefault("reconnect_interval", 0.01)
    options.setdefault("shutdown_timeout", 2.0)
    return WorkerScheduler(registry, processor, **options)


@pytest.mark.asyncio
async def test_processes_at_most_two_jobs_at_once(registry):
    store = registry.get()
    running = 0
    peak = 0

    async def processor(job, report):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.05)
        running -= 1
        return {"success": True, "letter_id": job.id}

    for n in range(5):
        await store.enqueue({"n": n}, JobOptions(job_id=f"job-{n}"))

    scheduler = make_scheduler(registry, processor)
    await registry.start()
    await scheduler.start()

    async def all_done():
        return (await store.stats()).completed == 5

    await wait_until(all_done)
    await scheduler.stop()
    await registry.close()

    assert peak == 2


@pytest.mark.asyncio
async def test_waits_for_readiness_before_processing(registry, redis_client):
    store = registry.get()
    await store.enqueue({}, JobOptions(job_id="job-1"))
    processor = AsyncMock(return_value={"success": True})

    real_ping = redis_client.ping
    redis_client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))

    scheduler = make_scheduler(registry, processor)
    await registry.start()
    await scheduler.start()
    await asyncio.sleep(0.1)

    processor.assert_not_awaited()
    assert (await store.get_status("job-1")).status == JobState.WAITING

    redis_client.ping = real_ping

    async def completed():
        return (await store.get_status("job-1")).status == JobState.COMPLETED

    await wait_until(completed)
    await scheduler.stop()
    await registry.close()


@pytest.mark.asyncio
async def test_start_twice_runs_one_loop(registry):
    scheduler = make_scheduler(registry, AsyncMock(return_value={}))

    await scheduler.start()
    task = scheduler._loop_task
    await scheduler.start()

    assert scheduler._loop_task is task
    assert scheduler.is_running
    await scheduler.stop()
    assert not scheduler.is_running


@pytest.mark.asyncio
async def test_processor_exceptions_use_queue_retries(registry):
    store = registry.get()
    await store.enqueue({}, JobOptions(job_id="job-1"))
    processor = AsyncMock(side_effect=RuntimeError("worker bug"))

    scheduler = make_scheduler(registry, processor)
    await registry.start()
    await scheduler.start()

    async def failed():
        return (await store.get_status("job-1")).status == JobState.FAILED

    await wait_until(failed)
    await scheduler.stop()
    await registry.close()

    view = await store.get_status("job-1")
    assert view.error == "worker bug"
    assert view.attempts_made == 3
    assert processor.await_count == 3


@pytest.mark.asyncio
async def test_progress_is_written_to_the_job(registry):
    store = registry.get()
    await store.enqueue({}, JobOptions(job_id="job-1"))
    seen = []

    async def processor(job, report):
        await report(50, "generating", "Halfway")
        seen.append((await store.get_status(job.id)).progress)
        return {"success": True}

    scheduler = make_scheduler(registry, processor)
    await registry.start()
    await scheduler.start()

    async def completed():
        return (await store.get_status("job-1")).status == JobState.COMPLETED

    await wait_until(completed)
    await scheduler.stop()
    await registry.close()

    assert seen == [50]


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_jobs(registry):
    store = registry.get()
    await store.enqueue({}, JobOptions(job_id="job-1"))
    started = asyncio.Event()

    async def processor(job, report):
        started.set()
        await asyncio.sleep(0.1)
        return {"success": True}

    scheduler = make_scheduler(registry, processor)
    await registry.start()
    await scheduler.start()
    await asyncio.wait_for(started.wait(), timeout=2)

    await scheduler.stop()

    assert (await store.get_status("job-1")).status == JobState.COMPLETED
    assert scheduler.in_flight == 0
    await registry.close()


@pytest.mark.asyncio
async def test_stalled_jobs_are_recovered_on_start(registry):
    store = registry.get()
    await store.enqueue({}, JobOptions(job_id="job-1"))
    await store.claim_next()
    await store.redis.delete(store._lock_key("job-1"))
    processor = AsyncMock(return_value={"success": True})

    scheduler = make_scheduler(registry, processor)
    await registry.start()
    await scheduler.start()

    async def completed():
        return (await store.get_status("job-1")).status == JobState.COMPLETED

    await wait_until(completed)
    await scheduler.stop()
    await registry.close()


@pytest.mark.asyncio
async def test_stop_without_start_is_a_no_op(registry):
    scheduler = make_scheduler(registry, AsyncMock())
    await scheduler.stop()
    assert not scheduler.is_running
