"""Celery application for periodic queue maintenance."""

from celery import Celery
from ..config import settings

# Create Celery app
celery_app = Celery("lexdraft", include=["lexdraft.workers.maintenance"])

# Configure Celery with shared settings
celery_app.conf.update(
    broker_url=settings.CELERY_BROKER_URL,
    result_backend=settings.CELERY_RESULT_BACKEND,
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.CELERY_ACCEPT_CONTENT,
    timezone=settings.CELERY_TIMEZONE,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    beat_schedule={
        "clean-generation-queue": {
            "task": "lexdraft.workers.maintenance.clean_generation_queue",
            "schedule": float(settings.QUEUE_CLEAN_INTERVAL_SECONDS),
        },
        "recover-stalled-generation-jobs": {
            "task": "lexdraft.workers.maintenance.recover_stalled_generation_jobs",
            "schedule": float(settings.QUEUE_STALLED_CHECK_INTERVAL_SECONDS),
        },
    },
)
