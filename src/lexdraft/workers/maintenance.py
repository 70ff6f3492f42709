"""Periodic maintenance of the generation queue, run by Celery beat."""

import logging
from typing import Optional

from celery import Task
from redis.exceptions import RedisError

from ..config import settings
from ..queue.registry import QueueRegistry
from ..queue.states import JobState
from ..utils.asyncio import run_async
from ..utils.errors import QueueUnavailable
from .celery_app import celery_app

logger = logging.getLogger(__name__)


class CallbackTask(Task):
    """Task with on_success and on_failure callbacks"""
    def on_success(self, retval, task_id, args, kwargs):
        logger.info(f"[maintenance] Task {task_id} succeeded")

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"[maintenance] Task {task_id} failed: {exc}")


def create_registry() -> QueueRegistry:
    """Registry with its own Redis client, bound to the task's event loop."""
    return QueueRegistry(settings)


@celery_app.task(base=CallbackTask, bind=True, max_retries=3)
def clean_generation_queue(self, grace_seconds: Optional[int] = None):
    """
    Remove finished generation jobs older than the grace period and log queue stats
    """
    try:
        return run_async(_clean_generation_queue(grace_seconds))
    except (RedisError, QueueUnavailable) as exc:
        logger.error(f"[maintenance] Queue cleanup failed: {exc}")
        raise self.retry(exc=exc, countdown=60)


async def _clean_generation_queue(grace_seconds: Optional[int] = None) -> dict:
    registry = create_registry()
    try:
        store = registry.get(settings.GENERATION_QUEUE_NAME)
        grace = settings.QUEUE_CLEAN_GRACE_SECONDS if grace_seconds is None else grace_seconds

        completed = await store.clean(grace * 1000, JobState.COMPLETED)
        failed = await store.clean(grace * 1000, JobState.FAILED)
        stats = await store.stats()

        logger.info(
            f"[maintenance] Queue {store.name}: removed {completed} completed and {failed} failed jobs",
            extra={"queue": store.name, **stats.model_dump()},
        )
        return {
            "queue": store.name,
            "completed_removed": completed,
            "failed_removed": failed,
            "stats": stats.model_dump(),
        }
    finally:
        await registry.close()


@celery_app.task(base=CallbackTask, bind=True, max_retries=3)
def recover_stalled_generation_jobs(self):
    """
    Hand generation jobs whose worker died back to the queue
    """
    try:
        return run_async(_recover_stalled_generation_jobs())
    except (RedisError, QueueUnavailable) as exc:
        logger.error(f"[maintenance] Stalled job recovery failed: {exc}")
        raise self.retry(exc=exc, countdown=30)


async def _recover_stalled_generation_jobs() -> dict:
    registry = create_registry()
    try:
        store = registry.get(settings.GENERATION_QUEUE_NAME)
        recovered = await store.recover_stalled()
        return {"queue": store.name, "recovered": recovered}
    finally:
        await registry.close()
