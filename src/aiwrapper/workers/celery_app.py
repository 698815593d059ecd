"""Celery application for AI jobs."""

from celery import Celery
from celery.signals import worker_process_init

from ..config import settings
from ..utils.asyncio import reset_worker_loop
from ..utils.redis import reset_redis_client

celery_app = Celery("aiwrapper", include=["aiwrapper.workers.tasks"])

celery_app.conf.update(
    broker_url=settings.CELERY_BROKER_URL,
    result_backend=settings.CELERY_RESULT_BACKEND,
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.CELERY_ACCEPT_CONTENT,
    timezone=settings.CELERY_TIMEZONE,
    # One job per pool slot; unacked jobs are redelivered if a worker dies
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=settings.WORKER_PREFETCH_MULTIPLIER,
    worker_concurrency=settings.JOB_WORKER_CONCURRENCY,
    task_track_started=True,
    task_default_queue=settings.JOB_QUEUE_NAME,
    task_routes={"aiwrapper.workers.tasks.*": {"queue": settings.JOB_QUEUE_NAME}},
    # Outcomes live on the job row
    task_ignore_result=True,
)


@worker_process_init.connect
def reset_child_state(**kwargs):
    """Drop the parent's event loop and Redis client in each forked pool process."""
    reset_worker_loop()
    reset_redis_client()
