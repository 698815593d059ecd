"""AI job queue: admission with de-duplication and the Celery worker task."""

import asyncio
import logging
from typing import Any, Dict, Optional

from celery import Task
from pydantic import ValidationError

from ..config import settings
from ..schemas.jobs import QueuePayload
from ..utils.asyncio import run_async
from ..utils.deadline import Deadline
from ..utils.errors import InputValidationError, JobTimeoutError, PermanentError
from ..utils.redis import get_redis_client
from .celery_app import celery_app

logger = logging.getLogger(__name__)

MIN_TIMEOUT_MS = 1000
TASK_NAME = "aiwrapper.workers.tasks.execute_ai_job"

_pipeline_deps = None


def inflight_key(job_id: str, queue: Optional[str] = None) -> str:
    return f"{queue or settings.JOB_QUEUE_NAME}:inflight:{job_id}"


def backoff_seconds(attempts_made: int, base: Optional[float] = None) -> float:
    """Exponential backoff: base, 2*base, 4*base..."""
    base = settings.JOB_BACKOFF_BASE_SECONDS if base is None else base
    return base * 2 ** max(0, attempts_made - 1)


def resolve_timeout_ms(payload: QueuePayload) -> int:
    return max(MIN_TIMEOUT_MS, payload.timeout_ms or settings.JOB_TIMEOUT_MS)


def parse_payload(job_payload: Any) -> QueuePayload:
    if isinstance(job_payload, QueuePayload):
        return job_payload
    try:
        return QueuePayload.model_validate(job_payload)
    except ValidationError as e:
        raise InputValidationError(f"Invalid AI job payload: {e}") from e


async def get_pipeline_deps():
    """Build the process-wide pipeline collaborators once."""
    global _pipeline_deps

    if _pipeline_deps is None:
        from ..cache import RedisCache
        from ..database import async_session
        from ..pipeline import EventWriter, JobRepository, PipelineDeps
        from ..providers.registry import ProviderRegistry
        from ..rag.store import PgVectorStore
        from ..routing.llm import LlmTaskClassifier
        from .progress import ProgressPublisher

        redis_client = await get_redis_client()
        registry = ProviderRegistry.from_settings(settings)
        _pipeline_deps = PipelineDeps(
            jobs=JobRepository(async_session),
            registry=registry,
            events=EventWriter(async_session),
            store=PgVectorStore(async_session),
            classifier=LlmTaskClassifier(
                registry,
                cache=RedisCache(redis_client),
                timeout_ms=settings.PROVIDER_TIMEOUT_MS,
            ),
            progress=ProgressPublisher(redis_client),
            settings=settings,
        )

    return _pipeline_deps


async def release_inflight(job_id: str, redis_client=None) -> None:
    try:
        client = redis_client or await get_redis_client()
        await client.delete(inflight_key(job_id))
    except Exception as e:
        logger.warning(f"[queue] Failed to release in-flight key for job {job_id}: {e}")


async def enqueue_ai_job(job_payload: Any, redis_client=None) -> bool:
    """
    Admit a job to the queue, at most once while it is in flight.

    The Celery task id is the job id and a ``SET NX EX`` key guards against a
    second admission until the job settles or the key expires.

    Returns:
        True if admitted, False if the job id is already in flight

    Raises:
        InputValidationError: Payload does not match the queue contract
    """
    payload = parse_payload(job_payload)
    client = redis_client or await get_redis_client()
    key = inflight_key(payload.db_job_id)

    admitted = await client.set(key, "1", nx=True, ex=settings.JOB_LOCK_TTL_SECONDS)
    if not admitted:
        logger.info(
            f"[queue] Job {payload.db_job_id} already in flight, skipping enqueue",
            extra={"job_id": payload.db_job_id},
        )
        return False

    try:
        execute_ai_job.apply_async(
            args=[payload.to_message()],
            task_id=payload.db_job_id,
            queue=settings.JOB_QUEUE_NAME,
        )
    except Exception:
        await client.delete(key)
        raise

    logger.info(f"[queue] Enqueued job {payload.db_job_id}", extra={"job_id": payload.db_job_id})
    return True


class JobOutcome:
    """Result of one delivery attempt as seen by the Celery task."""

    def __init__(self, job_id: Optional[str], attempt: int, error: Optional[BaseException] = None, retry: bool = False):
        self.job_id = job_id
        self.attempt = attempt
        self.error = error
        self.retry = retry

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {"status": "succeeded" if self.succeeded else "failed", "job_id": self.job_id, "attempt": self.attempt}


async def run_job_attempt(job_payload: Any, deps, attempt: int, max_attempts: int, redis_client=None) -> JobOutcome:
    """
    Run one delivery of a job and record its status.

    Args:
        job_payload: Raw queue message
        deps: Pipeline collaborators
        attempt: 1-based delivery number
        max_attempts: Total deliveries allowed

    Returns:
        JobOutcome; ``retry`` is set when the job was put back to queued
    """
    try:
        payload = parse_payload(job_payload)
    except InputValidationError as e:
        return await reject_payload(deps, job_payload, e, attempt, redis_client)

    job_id = payload.db_job_id
    timeout_ms = resolve_timeout_ms(payload)

    try:
        await deps.jobs.mark_running(job_id)
    except Exception as e:
        logger.error(f"[queue] Failed to mark job {job_id} running: {e}", extra={"job_id": job_id})

    deadline = Deadline(timeout_ms)
    pipeline = asyncio.ensure_future(process_job(payload, deps, deadline))
    done, _ = await asyncio.wait({pipeline}, timeout=timeout_ms / 1000.0)

    if pipeline not in done:
        # A late result must never be persisted
        pipeline.cancel()
        await asyncio.gather(pipeline, return_exceptions=True)
        return await record_failure(deps, job_id, JobTimeoutError(timeout_ms), attempt, max_attempts, redis_client)

    error = pipeline.exception()
    if error is not None:
        return await record_failure(deps, job_id, error, attempt, max_attempts, redis_client)

    await release_inflight(job_id, redis_client)
    logger.info(f"[queue] Job {job_id} completed", extra={"job_id": job_id, "attempt": attempt})
    return JobOutcome(job_id, attempt)


def raw_job_id(job_payload: Any) -> Optional[str]:
    if isinstance(job_payload, dict):
        job_id = job_payload.get("dbJobId", job_payload.get("db_job_id"))
        if isinstance(job_id, str) and job_id.strip():
            return job_id
    return None


async def reject_payload(deps, job_payload: Any, error: InputValidationError, attempt: int, redis_client=None) -> JobOutcome:
    """Settle a delivery whose payload can never parse; redelivery would not help."""
    job_id = raw_job_id(job_payload)
    logger.error(f"[queue] Rejected job payload: {error}", extra={"job_id": job_id, "attempt": attempt})
    if job_id is not None:
        await deps.jobs.mark_failed(job_id, str(error))
        await release_inflight(job_id, redis_client)
    return JobOutcome(job_id, attempt, error=error)


async def process_job(payload: QueuePayload, deps, deadline: Deadline):
    from ..pipeline.orchestrator import process_ai_job
    return await process_ai_job(payload, deps, deadline)


async def record_failure(deps, job_id: str, error: BaseException, attempt: int, max_attempts: int, redis_client=None) -> JobOutcome:
    message = str(error) or type(error).__name__
    final = isinstance(error, PermanentError) or attempt >= max_attempts

    logger.error(
        f"[queue] Job {job_id} failed on attempt {attempt}/{max_attempts}: {message}",
        extra={"job_id": job_id, "attempt": attempt, "error_type": type(error).__name__, "final": final},
    )

    if final:
        await deps.jobs.mark_failed(job_id, message)
        await release_inflight(job_id, redis_client)
        return JobOutcome(job_id, attempt, error=error)

    await deps.jobs.mark_queued(job_id, f"Retrying after failure ({attempt}/{max_attempts}): {message}")
    return JobOutcome(job_id, attempt, error=error, retry=True)


class CallbackTask(Task):
    """Task with error handling callback."""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Called when task fails."""
        logger.error(f"Task {task_id} failed: {exc}", exc_info=einfo)


@celery_app.task(
    base=CallbackTask,
    bind=True,
    max_retries=max(0, settings.JOB_ATTEMPTS - 1),
    acks_late=True,
    reject_on_worker_lost=True,
    name=TASK_NAME,
)
def execute_ai_job(self, job_payload: dict) -> dict:
    """Process one AI job delivery; retries with exponential backoff."""
    attempt = self.request.retries + 1

    async def async_execute():
        deps = await get_pipeline_deps()
        return await run_job_attempt(job_payload, deps, attempt, settings.JOB_ATTEMPTS)

    outcome = run_async(async_execute())

    if outcome.retry:
        countdown = backoff_seconds(attempt)
        logger.info(f"[queue] Retrying job {outcome.job_id} in {countdown}s (attempt {attempt + 1}/{settings.JOB_ATTEMPTS})")
        raise self.retry(exc=outcome.error, countdown=countdown)
    if outcome.error is not None:
        raise outcome.error

    return outcome.to_dict()
