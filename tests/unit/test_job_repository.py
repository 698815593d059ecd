"""Job repository and event writer against a SQLite database."""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine

from aiwrapper.database import create_session_factory, init_db
from aiwrapper.models import AuditEvent, JobStatus, UsageEvent
from aiwrapper.pipeline.events import EventWriter
from aiwrapper.pipeline.jobs import JobRepository


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


async def test_create_and_get(session_factory):
    repo = JobRepository(session_factory)
    created = await repo.create("user-1", "generic_chat", {"input": {"type": "text", "text": "hi"}}, job_id="job-1")

    job = await repo.get(created.id)
    assert job.status == JobStatus.QUEUED
    assert job.use_case == "generic_chat"
    assert job.input["input"]["text"] == "hi"
    assert await repo.get("missing") is None


async def test_succeeded_persists_result_and_clears_error(session_factory):
    repo = JobRepository(session_factory)
    await repo.create("user-1", "generic_chat", {}, job_id="job-1")
    await repo.mark_running("job-1")
    await repo.mark_queued("job-1", "Retrying after failure (1/3): boom")

    assert await repo.mark_succeeded("job-1", {"answer": "ok"}, [{"chunk_id": "1"}])

    job = await repo.get("job-1")
    assert job.status == JobStatus.SUCCEEDED
    assert job.result == {"answer": "ok"}
    assert job.citations == [{"chunk_id": "1"}]
    assert job.error is None


async def test_terminal_status_is_never_left(session_factory):
    repo = JobRepository(session_factory)
    await repo.create("user-1", "generic_chat", {}, job_id="job-1")
    await repo.mark_failed("job-1", "Job timed out after 1000ms")

    assert not await repo.mark_running("job-1")
    assert not await repo.mark_queued("job-1", "again")
    assert not await repo.mark_succeeded("job-1", {"answer": "late"}, [])

    job = await repo.get("job-1")
    assert job.status == JobStatus.FAILED
    assert job.error == "Job timed out after 1000ms"
    assert job.result == {}


async def test_event_writer_rows(session_factory):
    writer = EventWriter(session_factory)
    await writer.write_audit_event("user-1", "structured_output_validation_failed_final", {"stage": "retry"})
    event_id = await writer.write_usage_event("user-1", "job_1_simple", 120.6, -5, 0.0000274)

    async with session_factory() as db:
        audit = (await db.execute(select(AuditEvent))).scalar_one()
        usage = (await db.execute(select(UsageEvent).where(UsageEvent.id == event_id))).scalar_one()

    assert audit.action == "structured_output_validation_failed_final"
    assert audit.event_metadata == {"stage": "retry"}
    assert usage.tokens_in == 121
    assert usage.tokens_out == 0
    assert float(usage.cost_estimate) == pytest.approx(0.000027)
