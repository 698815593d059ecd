"""Test configuration and fixtures."""

import os
from typing import Any, Dict, List, Optional
from uuid import uuid4

import pytest

# Set up test environment before importing aiwrapper
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("JOB_BACKOFF_BASE_SECONDS", "1")

from aiwrapper.models import JobStatus, TERMINAL_STATUSES
from aiwrapper.providers.base import (
    EmbedParams,
    EmbedResult,
    GenerateTextParams,
    GenerateTextResult,
    LLMProvider,
    ProviderUsage,
)
from aiwrapper.providers.registry import ProviderRegistry
from aiwrapper.rag.store import InMemoryVectorStore

KEYWORDS = ["indemnity", "liability", "payment", "termination", "revenue", "trial", "dns", "contract"]


def keyword_vector(text: str) -> List[float]:
    """Deterministic embedding: keyword counts plus a constant bias."""
    lowered = text.lower()
    return [float(lowered.count(word)) for word in KEYWORDS] + [1.0]


class FakeProvider(LLMProvider):
    """Scripted provider; the last response repeats once the script runs out."""

    def __init__(self, name: str, responses: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.name = name
        self.responses = list(responses or ['{"answer": "ok", "key_points": []}'])
        self.error = error
        self.calls: List[GenerateTextParams] = []
        self.embed_calls: List[EmbedParams] = []

    async def generate_text(self, params: GenerateTextParams) -> GenerateTextResult:
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        text = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return GenerateTextResult(text=text, usage=ProviderUsage(input_tokens=100, output_tokens=20))

    async def embed(self, params: EmbedParams) -> EmbedResult:
        self.embed_calls.append(params)
        if self.error is not None:
            raise self.error
        return EmbedResult(vectors=[keyword_vector(text) for text in params.inputs])


class FakeJob:
    def __init__(self, id: str, user_id: str, use_case: str, input: Dict[str, Any]):
        self.id = id
        self.user_id = user_id
        self.use_case = use_case
        self.input = input
        self.status = JobStatus.QUEUED
        self.result: Dict[str, Any] = {}
        self.citations: List[Any] = []
        self.error: Optional[str] = None


class InMemoryJobRepository:
    """Job repository double with the same monotonic transition rule."""

    def __init__(self):
        self.jobs: Dict[str, FakeJob] = {}
        self.succeeded_calls = 0

    def add(self, use_case: str, input: Dict[str, Any], user_id: str = "user-1", job_id: Optional[str] = None) -> FakeJob:
        job = FakeJob(job_id or str(uuid4()), user_id, use_case, input)
        self.jobs[job.id] = job
        return job

    async def get(self, job_id: str) -> Optional[FakeJob]:
        return self.jobs.get(job_id)

    def _transition(self, job_id: str, status: JobStatus, **values) -> bool:
        job = self.jobs.get(job_id)
        if job is None or job.status in TERMINAL_STATUSES:
            return False
        job.status = status
        for key, value in values.items():
            setattr(job, key, value)
        return True

    async def mark_queued(self, job_id: str, error: Optional[str] = None) -> bool:
        return self._transition(job_id, JobStatus.QUEUED, error=error)

    async def mark_running(self, job_id: str) -> bool:
        return self._transition(job_id, JobStatus.RUNNING, error=None)

    async def mark_failed(self, job_id: str, error: str) -> bool:
        return self._transition(job_id, JobStatus.FAILED, error=error)

    async def mark_succeeded(self, job_id: str, result: Dict[str, Any], citations: List[Any]) -> bool:
        self.succeeded_calls += 1
        return self._transition(job_id, JobStatus.SUCCEEDED, result=result, citations=citations, error=None)


class RecordingEvents:
    def __init__(self):
        self.audit: List[Dict[str, Any]] = []
        self.usage: List[Dict[str, Any]] = []

    async def write_audit_event(self, user_id, action, metadata=None):
        self.audit.append({"user_id": user_id, "action": action, "metadata": metadata or {}})

    async def write_usage_event(self, user_id, use_case, tokens_in, tokens_out, cost_estimate):
        self.usage.append({
            "user_id": user_id,
            "use_case": use_case,
            "tokens_in": tokens_in,
            "tokens_out": tokens_out,
            "cost_estimate": cost_estimate,
        })
        return str(uuid4())


@pytest.fixture
def job_repository():
    return InMemoryJobRepository()


@pytest.fixture
def events():
    return RecordingEvents()


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def make_registry():
    def _make(**providers: LLMProvider) -> ProviderRegistry:
        return ProviderRegistry(providers=providers)
    return _make


@pytest.fixture
async def redis_mock():
    """Mock Redis client for testing."""
    from unittest.mock import AsyncMock
    return AsyncMock()
