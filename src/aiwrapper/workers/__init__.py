from .celery_app import celery_app
from .progress import ProgressPublisher
from .tasks import (
    JobOutcome,
    backoff_seconds,
    enqueue_ai_job,
    execute_ai_job,
    inflight_key,
    record_failure,
    run_job_attempt,
)

__all__ = [
    "celery_app",
    "ProgressPublisher",
    "JobOutcome",
    "backoff_seconds",
    "enqueue_ai_job",
    "execute_ai_job",
    "inflight_key",
    "record_failure",
    "run_job_attempt",
]
