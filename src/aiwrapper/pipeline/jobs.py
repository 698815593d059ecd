"""Job row access with monotonic status transitions."""

import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.future import select

from ..models import Job, JobStatus, TERMINAL_STATUSES

logger = logging.getLogger(__name__)


class JobRepository:
    """Reads and updates `jobs` rows.

    Every transition is a single UPDATE guarded by ``status NOT IN
    (succeeded, failed)``, so a job that reached a terminal state is never
    moved again. Each call returns whether a row was changed.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def create(self, user_id: str, use_case: str, input: Dict[str, Any], job_id: Optional[str] = None) -> Job:
        job = Job(
            id=job_id or str(uuid4()),
            user_id=user_id,
            use_case=use_case,
            status=JobStatus.QUEUED,
            input=input,
            result={},
            citations=[],
        )
        async with self.session_factory() as db:
            db.add(job)
            await db.commit()
        logger.info(f"[jobs] Created job {job.id}", extra={"job_id": job.id, "use_case": use_case})
        return job

    async def get(self, job_id: str) -> Optional[Job]:
        async with self.session_factory() as db:
            result = await db.execute(select(Job).where(Job.id == job_id))
            return result.scalar_one_or_none()

    async def _transition(self, job_id: str, **values) -> bool:
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status.notin_(TERMINAL_STATUSES))
            .values(**values)
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            await db.commit()

        changed = bool(result.rowcount)
        if not changed:
            logger.warning(
                f"[jobs] Ignored transition to {values.get('status')} for job {job_id}",
                extra={"job_id": job_id},
            )
        return changed

    async def mark_queued(self, job_id: str, error: Optional[str] = None) -> bool:
        return await self._transition(job_id, status=JobStatus.QUEUED, error=error)

    async def mark_running(self, job_id: str) -> bool:
        return await self._transition(job_id, status=JobStatus.RUNNING, error=None)

    async def mark_failed(self, job_id: str, error: str) -> bool:
        return await self._transition(job_id, status=JobStatus.FAILED, error=error)

    async def mark_succeeded(self, job_id: str, result: Dict[str, Any], citations: List[Any]) -> bool:
        """Persist result and citations together with the terminal status."""
        return await self._transition(
            job_id,
            status=JobStatus.SUCCEEDED,
            result=result,
            citations=citations,
            error=None,
        )
