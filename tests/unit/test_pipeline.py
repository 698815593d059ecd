"""Unit tests for the job pipeline orchestrator."""

import json

import pytest
from unittest.mock import AsyncMock

from aiwrapper.config import Settings
from aiwrapper.models import JobStatus
from aiwrapper.pipeline import PipelineDeps, REFUSAL_MESSAGE, extract_pdf_text, process_ai_job
from aiwrapper.routing import BASE_SYSTEM_PROMPT
from aiwrapper.routing.llm import LlmTaskClassifier
from aiwrapper.schemas import QueuePayload
from aiwrapper.utils import Deadline
from aiwrapper.utils.errors import (
    InputValidationError,
    JobNotFound,
    JobTimeoutError,
    NoProviderAvailable,
    StructuredOutputValidationFailure,
)
from conftest import FakeProvider

CONTRACT_TEXT = (
    "This Master Services Agreement is entered into by Acme Corp and Beta LLC. The supplier shall deliver "
    "services monthly. The customer shall pay invoices within 30 days. Either party may terminate on 90 days "
    "notice. Liability is uncapped for indirect damages. Confidential information must be protected for five years."
)

SPARSE_LEGAL = json.dumps({"summary": "Services agreement.", "key_risks": [], "obligations": [], "recommendations": []})

RICH_LEGAL = json.dumps({
    "summary": "Services agreement between Acme and Beta with uncapped liability.",
    "key_risks": [
        {"clause": "Liability", "risk_level": "high", "explanation": "Uncapped indirect damages."},
        {"clause": "Termination", "risk_level": "medium", "explanation": "90 days notice."},
        {"clause": "Payment", "risk_level": "low", "explanation": "30 day terms."},
        {"clause": "Confidentiality", "risk_level": "medium", "explanation": "Five year term."},
    ],
    "obligations": ["Supplier delivers monthly.", "Customer pays within 30 days.", "Both protect confidential data."],
    "recommendations": ["Cap liability.", "Shorten notice period.", "Define indirect damages."],
    "disclaimer": "This is an AI analysis and not legal advice.",
})


def text_input(text, rag_enabled=None, **options):
    persisted = {"input": {"type": "text", "text": text}, "options": dict(options)}
    if rag_enabled is not None:
        persisted["options"]["rag"] = {"enabled": rag_enabled}
    return persisted


def payload_for(job, **extra):
    return QueuePayload.model_validate({"dbJobId": job.id, **extra})


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def deps_factory(job_repository, events, vector_store, make_registry):
    def _make(*, settings=None, store=vector_store, **providers):
        return PipelineDeps(
            jobs=job_repository,
            registry=make_registry(**providers),
            events=events,
            store=store,
            settings=settings,
        )
    return _make


@pytest.mark.asyncio
async def test_simple_generic_job(job_repository, events, deps_factory):
    provider = FakeProvider("openai", responses=['{"answer": "DNS resolves names.", "key_points": ["Names to IPs"]}'])
    job = job_repository.add("generic_analysis", text_input("What is DNS?"))

    result = await process_ai_job(payload_for(job), deps_factory(openai=provider))

    assert result == {"answer": "DNS resolves names.", "key_points": ["Names to IPs"]}
    assert job.status == JobStatus.SUCCEEDED
    assert job.result == result
    assert job.citations == []

    call = provider.calls[0]
    assert call.model == "gpt-4o-mini"
    assert call.temperature == 0.2
    assert call.max_tokens == 400
    assert call.messages[0].content == BASE_SYSTEM_PROMPT

    assert events.usage == [{
        "user_id": "user-1",
        "use_case": "job_generic_analysis_simple",
        "tokens_in": 100,
        "tokens_out": 20,
        "cost_estimate": 0.000027,
    }]


@pytest.mark.asyncio
async def test_model_classifier_shares_the_job_deadline(job_repository, events, make_registry):
    provider = FakeProvider("openai", responses=["SIMPLE", '{"answer": "Set three goals.", "key_points": []}'])
    registry = make_registry(openai=provider)
    deps = PipelineDeps(
        jobs=job_repository,
        registry=registry,
        events=events,
        classifier=LlmTaskClassifier(registry, timeout_ms=25000),
    )
    job = job_repository.add("generic_analysis", text_input("Help me with my quarterly goals for the team", rag_enabled=False))

    await process_ai_job(payload_for(job), deps, Deadline(1500))

    classification, generation = provider.calls
    assert classification.max_tokens == 16
    assert 0 < classification.timeout_ms <= 1500
    assert generation.timeout_ms <= classification.timeout_ms
    assert job.status == JobStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_sparse_legal_output_is_enriched(job_repository, events, deps_factory):
    provider = FakeProvider("openai", responses=[SPARSE_LEGAL, RICH_LEGAL])
    job = job_repository.add("legal_contract_analysis", text_input(CONTRACT_TEXT, rag_enabled=False))

    result = await process_ai_job(payload_for(job), deps_factory(openai=provider))

    assert len(provider.calls) == 2
    assert len(result["key_risks"]) == 4
    assert job.result["recommendations"] == ["Cap liability.", "Shorten notice period.", "Define indirect damages."]

    first, enrichment = provider.calls
    assert first.max_tokens >= 2200
    assert enrichment.max_tokens >= 3000
    assert enrichment.temperature <= 0.3
    assert "Previous sparse output:" in enrichment.messages[-1].content
    assert events.usage[0]["tokens_in"] == 200


@pytest.mark.asyncio
async def test_enrichment_kept_only_when_score_improves(job_repository, deps_factory):
    provider = FakeProvider("openai", responses=[SPARSE_LEGAL, SPARSE_LEGAL])
    job = job_repository.add("legal_contract_analysis", text_input(CONTRACT_TEXT, rag_enabled=False))

    result = await process_ai_job(payload_for(job), deps_factory(openai=provider))

    assert result["summary"] == "Services agreement."
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_enrichment_failure_is_swallowed(job_repository, deps_factory):
    provider = FakeProvider("openai", responses=[SPARSE_LEGAL, "not json at all"])
    job = job_repository.add("legal_contract_analysis", text_input(CONTRACT_TEXT, rag_enabled=False))

    result = await process_ai_job(payload_for(job), deps_factory(openai=provider))

    assert result["summary"] == "Services agreement."
    assert job.status == JobStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_refused_request_skips_generation(job_repository, events, deps_factory):
    provider = FakeProvider("openai")
    job = job_repository.add("legal_contract_analysis", text_input("Should I sign this contract with Acme?"))

    result = await process_ai_job(payload_for(job), deps_factory(openai=provider))

    assert result["status"] == "refused"
    assert result["message"] == REFUSAL_MESSAGE
    assert result["refusal_rules"][0]["id"] == "legal_personalized_advice"
    assert job.status == JobStatus.SUCCEEDED
    assert job.citations == []
    assert provider.calls == []
    assert events.usage[0]["use_case"] == "job_legal_contract_analysis_refused"
    assert events.usage[0]["tokens_out"] == 0


@pytest.mark.asyncio
async def test_two_invalid_responses_fail_the_job(job_repository, events, deps_factory):
    provider = FakeProvider("openai", responses=['{"foo":"bar"}', '{"still":"invalid"}'])
    job = job_repository.add("legal_contract_analysis", text_input("Review the indemnity clause.", rag_enabled=False))

    with pytest.raises(StructuredOutputValidationFailure, match="STRUCTURED_OUTPUT_SCHEMA_VALIDATION_FAILED"):
        await process_ai_job(payload_for(job), deps_factory(openai=provider))

    assert len(events.audit) == 2
    assert job_repository.succeeded_calls == 0
    assert "Return ONLY corrected JSON matching the schema; no extra text." in provider.calls[-1].messages[-1].content


@pytest.mark.asyncio
async def test_rag_stores_input_and_returns_citations(job_repository, vector_store, deps_factory):
    provider = FakeProvider("openai", responses=[RICH_LEGAL])
    job = job_repository.add("legal_contract_analysis", text_input(CONTRACT_TEXT))

    await process_ai_job(payload_for(job), deps_factory(openai=provider))

    titles = [doc["title"] for doc in vector_store.documents.values()]
    assert titles == [f"Legal Contract Analysis:{job.id}"]
    assert job.citations
    assert job.citations[0]["citation_id"].startswith("C")
    assert "Retrieved context:" in provider.calls[0].messages[-1].content


@pytest.mark.asyncio
async def test_privacy_flag_disables_rag_storage(job_repository, vector_store, deps_factory):
    provider = FakeProvider("openai", responses=[RICH_LEGAL])
    job = job_repository.add("legal_contract_analysis", text_input(CONTRACT_TEXT))
    settings = Settings(PRIVACY_DISABLE_RAG_STORAGE=True)

    await process_ai_job(payload_for(job), deps_factory(settings=settings, openai=provider))

    assert vector_store.documents == {}
    assert job.status == JobStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_rag_failures_do_not_fail_the_job(job_repository, vector_store, deps_factory):
    provider = FakeProvider("openai", responses=[RICH_LEGAL])
    vector_store.upsert_document = AsyncMock(side_effect=RuntimeError("db down"))
    vector_store.search = AsyncMock(side_effect=RuntimeError("db down"))
    job = job_repository.add("legal_contract_analysis", text_input(CONTRACT_TEXT))

    await process_ai_job(payload_for(job), deps_factory(openai=provider))

    assert job.status == JobStatus.SUCCEEDED
    assert job.citations == []


@pytest.mark.asyncio
async def test_runtime_input_overrides_persisted_input(job_repository, deps_factory):
    provider = FakeProvider("openai", responses=['{"answer": "ok"}'])
    job = job_repository.add("generic_analysis", text_input("Persisted question"))
    payload = payload_for(job, runtimeInput={"type": "text", "text": "Runtime question"})

    await process_ai_job(payload, deps_factory(openai=provider))

    prompt = provider.calls[0].messages[-1].content
    assert "Runtime question" in prompt
    assert "Persisted question" not in prompt
    assert job.input["input"]["text"] == "Persisted question"


@pytest.mark.asyncio
async def test_pdf_input_uses_extractor(job_repository, make_registry, events):
    provider = FakeProvider("openai", responses=['{"answer": "ok"}'])
    extractor = AsyncMock(return_value="Extracted PDF body")
    job = job_repository.add(
        "generic_analysis",
        {"input": {"type": "pdf", "storageUrl": "https://files.example.com/a.pdf"}},
    )
    deps = PipelineDeps(jobs=job_repository, registry=make_registry(openai=provider), events=events, pdf_extractor=extractor)

    await process_ai_job(payload_for(job), deps)

    extractor.assert_awaited_once_with("https://files.example.com/a.pdf")
    assert "Extracted PDF body" in provider.calls[0].messages[-1].content


@pytest.mark.asyncio
async def test_missing_job(deps_factory):
    payload = QueuePayload.model_validate({"dbJobId": "3f0b6a2e-6a55-4b8e-9a0e-2f4c1d7e8b90"})
    with pytest.raises(JobNotFound):
        await process_ai_job(payload, deps_factory(openai=FakeProvider("openai")))


@pytest.mark.asyncio
async def test_blank_text_is_rejected(job_repository, deps_factory):
    job = job_repository.add("generic_analysis", text_input("    "))
    with pytest.raises(InputValidationError, match="Extracted input text is empty"):
        await process_ai_job(payload_for(job), deps_factory(openai=FakeProvider("openai")))


@pytest.mark.asyncio
async def test_no_configured_provider(job_repository, deps_factory):
    job = job_repository.add("generic_analysis", text_input("What is DNS?"))
    with pytest.raises(NoProviderAvailable):
        await process_ai_job(payload_for(job), deps_factory())


@pytest.mark.asyncio
async def test_expired_deadline_stops_the_pipeline(job_repository, deps_factory):
    provider = FakeProvider("openai")
    job = job_repository.add("generic_analysis", text_input("What is DNS?"))
    clock = FakeClock()
    deadline = Deadline(1000, clock=clock)
    clock.now = 5.0

    with pytest.raises(JobTimeoutError):
        await process_ai_job(payload_for(job), deps_factory(openai=provider), deadline)

    assert provider.calls == []
    assert job.status == JobStatus.QUEUED


@pytest.mark.asyncio
async def test_deadline_running_out_during_rag_fails_the_job(job_repository, deps_factory, caplog):
    provider = FakeProvider("openai")
    job = job_repository.add("legal_contract_analysis", text_input(CONTRACT_TEXT))
    clock = FakeClock()
    deadline = Deadline(1000, clock=clock)
    clock.now = 0.9996

    with pytest.raises(JobTimeoutError):
        await process_ai_job(payload_for(job), deps_factory(openai=provider), deadline)

    assert provider.embed_calls == []
    assert provider.calls == []
    assert "Failed to store job input" not in caplog.text


@pytest.mark.asyncio
async def test_provider_timeout_is_bounded_by_deadline(job_repository, deps_factory):
    provider = FakeProvider("openai", responses=['{"answer": "ok"}'])
    job = job_repository.add("generic_analysis", text_input("What is DNS?"))

    await process_ai_job(payload_for(job), deps_factory(openai=provider), Deadline(3000))

    assert 0 < provider.calls[0].timeout_ms <= 3000


def test_extract_pdf_text_joins_pages(mocker):
    pages = [mocker.Mock(extract_text=lambda: "Page one"), mocker.Mock(extract_text=lambda: None)]
    mocker.patch("aiwrapper.pipeline.pdf.PdfReader", return_value=mocker.Mock(pages=pages))

    assert extract_pdf_text(b"%PDF-1.4") == "Page one"


def test_extract_pdf_text_wraps_parse_errors(mocker):
    mocker.patch("aiwrapper.pipeline.pdf.PdfReader", side_effect=ValueError("bad xref"))

    with pytest.raises(InputValidationError, match="PDF parsing failed: bad xref"):
        extract_pdf_text(b"not a pdf")
