"""
End-to-end processing of one analysis job.

Steps: load job -> extract text -> guardrails -> classify and route -> RAG
store/retrieve -> generate -> output contract -> optional enrichment ->
persist result and usage.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..config import settings as default_settings
from ..contracts import (
    OutputContractValidator,
    build_enrichment_messages,
    completeness_score,
    enrichment_max_tokens,
    enrichment_temperature,
    should_attempt_enrichment,
)
from ..providers.base import ChatMessage, GenerateTextParams, GenerateTextResult, ProviderUsage
from ..providers.fallback import (
    GENERATE_TEXT,
    build_generation_order,
    execute_with_fallback,
    select_embed_runtime,
)
from ..providers.registry import ProviderRegistry
from ..rag import build_context, chunk_text, embed_chunks, retrieve_top_k
from ..rag.store import VectorStore
from ..routing.llm import LlmTaskClassifier
from ..routing import (
    BASE_SYSTEM_PROMPT,
    TaskType,
    approximate_tokens,
    classify_task,
    estimate_cost,
    resolve_usage_tokens,
    route_model,
)
from ..schemas.jobs import JobOptions, PersistedJobInput, QueuePayload, TextJobInput
from ..utils.deadline import Deadline
from ..utils.errors import InputValidationError, JobNotFound, JobTimeoutError, NoProviderAvailable
from ..verticals import PromptContext, evaluate_guardrails, get_vertical
from ..verticals.types import VerticalConfig
from .pdf import extract_text_from_pdf_url

logger = logging.getLogger(__name__)

REFUSAL_MESSAGE = "Request blocked by vertical guardrails."
INLINE_TEXT_SOURCE = "inline:text"

TEMPERATURE_BY_TASK = {
    TaskType.SIMPLE: 0.2,
    TaskType.MEDIUM: 0.4,
}
DEFAULT_TEMPERATURE = 0.5


class PipelineDeps:
    """Collaborators for ``process_ai_job``, built once per worker process.

    ``jobs`` must provide ``get``/``mark_succeeded``; ``events`` must provide
    ``write_audit_event``/``write_usage_event``. ``progress`` is optional and
    receives ``publish_progress(job_id, progress, step, message)``.
    """

    def __init__(
        self,
        jobs,
        registry: ProviderRegistry,
        events,
        store: Optional[VectorStore] = None,
        classifier: Optional[Callable[[str], Awaitable[Any]]] = None,
        progress=None,
        settings=None,
        pdf_extractor: Callable[[str], Awaitable[str]] = extract_text_from_pdf_url,
    ):
        self.jobs = jobs
        self.registry = registry
        self.events = events
        self.store = store
        self.classifier = classifier
        self.progress = progress
        self.settings = settings or default_settings
        self.pdf_extractor = pdf_extractor


class UsageRecord:
    def __init__(self, provider: str, request_text: str, result: GenerateTextResult):
        self.provider = provider
        self.request_text = request_text
        self.result = result


def _request_text(messages: List[ChatMessage]) -> str:
    return "\n\n".join(m.content for m in messages)


def _bounded_classifier(classifier, deadline: Deadline):
    """Give a model-backed classifier the job deadline; plain callbacks pass through."""
    if isinstance(classifier, LlmTaskClassifier):
        return functools.partial(classifier, deadline=deadline)
    return classifier


async def _publish(deps: PipelineDeps, job_id: str, progress: int, step: str, message: str) -> None:
    if deps.progress is None:
        return
    try:
        await deps.progress.publish_progress(job_id, progress, step, message)
    except Exception as e:
        logger.warning(f"[pipeline] Progress publish failed for job {job_id}: {e}")


async def extract_input_text(input, deps: PipelineDeps) -> Tuple[str, str]:
    """Return (text, source) for a text or PDF input."""
    if isinstance(input, TextJobInput):
        source = str(input.storage_url) if input.storage_url else INLINE_TEXT_SOURCE
        return input.text.strip(), source

    storage_url = str(input.storage_url)
    return await deps.pdf_extractor(storage_url), storage_url


def ensure_non_empty_text(text: str) -> str:
    normalized = (text or "").strip()
    if not normalized:
        raise InputValidationError("Extracted input text is empty")
    return normalized


def _parse_persisted_input(raw: Any) -> PersistedJobInput:
    try:
        return PersistedJobInput.model_validate(raw)
    except ValidationError as e:
        raise InputValidationError(f"Invalid persisted job input: {e}") from e


def resolve_temperature(options: Optional[JobOptions], task_type: TaskType) -> float:
    if options is not None and options.temperature is not None:
        return options.temperature
    return TEMPERATURE_BY_TASK.get(task_type, DEFAULT_TEMPERATURE)


def resolve_max_tokens(options: Optional[JobOptions], task_type: TaskType, vertical: VerticalConfig) -> int:
    base = options.max_tokens if options is not None and options.max_tokens is not None else route_model(task_type).max_tokens
    return max(base, vertical.min_max_tokens)


async def process_ai_job(payload: QueuePayload, deps: PipelineDeps, deadline: Optional[Deadline] = None) -> Dict[str, Any]:
    """
    Run one job to completion and persist its result.

    Args:
        payload: Validated queue payload
        deps: Pipeline collaborators
        deadline: Wall-clock budget; checked between steps and bounding provider calls

    Returns:
        The persisted result object

    Raises:
        JobNotFound: No row for ``payload.db_job_id``
        InputValidationError: Disallowed input type or empty text
        NoProviderAvailable: No configured provider in the generation order
        StructuredOutputValidationFailure: Output failed the schema after one corrective retry
        JobTimeoutError: The deadline expired between steps
    """
    deadline = deadline or Deadline.unbounded()
    cfg = deps.settings
    provider_timeout_ms = cfg.PROVIDER_TIMEOUT_MS

    record = await deps.jobs.get(payload.db_job_id)
    if record is None:
        raise JobNotFound(f"Job {payload.db_job_id} not found")

    job_id = record.id
    vertical = get_vertical(record.use_case)
    persisted = _parse_persisted_input(record.input)
    input = payload.runtime_input or persisted.input
    options = persisted.options

    if input.type not in vertical.input_types_allowed:
        raise InputValidationError(
            f"Vertical {vertical.id} does not allow input type {input.type}. "
            f"Allowed: {', '.join(vertical.input_types_allowed)}"
        )

    logger.info(
        f"[pipeline] Starting job {job_id}",
        extra={"job_id": job_id, "vertical_id": vertical.id, "input_type": input.type},
    )
    await _publish(deps, job_id, 5, "extracting", "Extracting input text...")

    deadline.check()
    extracted_text, source = await extract_input_text(input, deps)
    extracted_text = ensure_non_empty_text(extracted_text)

    # Guardrails
    evaluation = evaluate_guardrails(extracted_text, vertical.guardrails)
    if evaluation.refused:
        result = {
            "status": "refused",
            "message": REFUSAL_MESSAGE,
            "refusal_rules": evaluation.refusal_matches,
        }
        await deps.jobs.mark_succeeded(job_id, result, [])
        await deps.events.write_usage_event(
            user_id=record.user_id,
            use_case=f"job_{vertical.id}_refused",
            tokens_in=approximate_tokens(extracted_text),
            tokens_out=0,
            cost_estimate=0,
        )
        logger.info(
            f"[pipeline] Job {job_id} refused by guardrails",
            extra={"job_id": job_id, "rules": [m["id"] for m in evaluation.refusal_matches]},
        )
        await _publish(deps, job_id, 100, "refused", REFUSAL_MESSAGE)
        return result

    guarded_text = ensure_non_empty_text(evaluation.sanitized_input)

    # Classification and routing
    deadline.check()
    await _publish(deps, job_id, 15, "classifying", "Classifying request...")
    task_type = await classify_task(guarded_text, _bounded_classifier(deps.classifier, deadline))
    preferred = list(options.preferred_providers) if options and options.preferred_providers else None
    generation_order = build_generation_order(task_type, preferred)

    if not any(deps.registry.is_configured(name) for name in generation_order):
        raise NoProviderAvailable(
            "No AI provider is configured. Set OPENAI_API_KEY, GOOGLE_API_KEY, ANTHROPIC_API_KEY "
            "or OLLAMA_BASE_URL and restart the worker."
        )

    # RAG
    context, citations = await _run_rag(deps, record, vertical, options, preferred, guarded_text, source, deadline)

    # Generation
    deadline.check()
    temperature = resolve_temperature(options, task_type)
    max_tokens = resolve_max_tokens(options, task_type, vertical)

    prompt_messages = vertical.prompt_template(PromptContext(
        input_text=guarded_text,
        context=context,
        use_case=vertical.id,
        locale=options.locale if options else None,
    ))
    if not prompt_messages:
        raise InputValidationError(f"Vertical {vertical.id} prompt template returned no messages")

    messages = [ChatMessage(role="system", content=BASE_SYSTEM_PROMPT), *prompt_messages]
    usage_records: List[UsageRecord] = []

    async def generate(call_messages: List[ChatMessage], call_max_tokens: int, call_temperature: float) -> str:
        deadline.check()
        outcome = await execute_with_fallback(
            GENERATE_TEXT,
            lambda name: GenerateTextParams(
                model=deps.registry.model_for(task_type, name),
                messages=call_messages,
                max_tokens=call_max_tokens,
                temperature=call_temperature,
                timeout_ms=deadline.remaining_ms(cap=provider_timeout_ms),
            ),
            deps.registry,
            generation_order,
        )
        usage_records.append(UsageRecord(outcome.provider, _request_text(call_messages), outcome.result))
        logger.info(
            f"[pipeline] Generated with {outcome.provider}",
            extra={"job_id": job_id, "provider": outcome.provider, "model": outcome.model},
        )
        return outcome.result.text

    await _publish(deps, job_id, 50, "generating", "Generating analysis...")
    first_text = await generate(messages, max_tokens, temperature)

    validator = OutputContractValidator(
        vertical,
        audit_writer=deps.events.write_audit_event,
        user_id=record.user_id,
        job_id=job_id,
    )
    output = await validator.enforce(
        messages,
        first_text,
        lambda retry_messages: generate(retry_messages, max_tokens, temperature),
    )
    if vertical.post_process is not None:
        output = vertical.post_process(output)

    # Enrichment
    if should_attempt_enrichment(vertical, guarded_text, output):
        output = await _enrich(
            validator, vertical, guarded_text, context, output, generate,
            enrichment_max_tokens(vertical, max_tokens), enrichment_temperature(temperature), job_id,
        )

    deadline.check()
    citation_dicts = [c.to_dict() for c in citations]
    await deps.jobs.mark_succeeded(job_id, output, citation_dicts)

    tokens_in, tokens_out, cost = 0, 0, 0.0
    for usage_call in usage_records:
        call_in, call_out = resolve_usage_tokens(usage_call.result.usage, usage_call.request_text, usage_call.result.text)
        tokens_in += call_in
        tokens_out += call_out
        cost += estimate_cost(
            ProviderUsage(input_tokens=call_in, output_tokens=call_out),
            deps.registry.price_for(usage_call.provider),
        )

    await deps.events.write_usage_event(
        user_id=record.user_id,
        use_case=f"job_{vertical.id}_{task_type.value.lower()}",
        tokens_in=tokens_in,
        tokens_out=tokens_out,
        cost_estimate=round(cost, 6),
    )

    logger.info(
        f"[pipeline] Job {job_id} succeeded",
        extra={"job_id": job_id, "vertical_id": vertical.id, "tokens_in": tokens_in, "tokens_out": tokens_out},
    )
    await _publish(deps, job_id, 100, "completed", "Analysis complete")
    return output


async def _run_rag(deps, record, vertical, options, preferred, guarded_text, source, deadline) -> Tuple[str, list]:
    """Store the input and retrieve context; failures degrade to no context."""
    cfg = deps.settings
    rag_options = options.rag if options else None

    enabled_requested = (
        rag_options.enabled if rag_options is not None and rag_options.enabled is not None else vertical.rag.enabled
    )
    if not enabled_requested:
        return "", []

    top_k = rag_options.top_k if rag_options is not None and rag_options.top_k is not None else vertical.rag.top_k
    runtime = select_embed_runtime(deps.registry, preferred)
    if runtime is None or deps.store is None:
        logger.warning(
            "[rag] RAG requested but no embedding provider configured. Continuing without RAG.",
            extra={"job_id": record.id, "vertical_id": vertical.id},
        )
        return "", []

    store_requested = vertical.rag.store_input_as_docs
    if rag_options is not None:
        if rag_options.store_input_as_docs is not None:
            store_requested = rag_options.store_input_as_docs
        elif rag_options.store_input is not None:
            store_requested = rag_options.store_input

    if store_requested and cfg.PRIVACY_DISABLE_RAG_STORAGE:
        logger.warning(
            "[rag] RAG storage was requested but is disabled by PRIVACY_DISABLE_RAG_STORAGE",
            extra={"job_id": record.id, "vertical_id": vertical.id},
        )
    elif store_requested:
        deadline.check()
        await _publish(deps, record.id, 25, "indexing", "Indexing input for retrieval...")
        try:
            chunks = chunk_text(guarded_text, size=cfg.RAG_CHUNK_SIZE, overlap=cfg.RAG_CHUNK_OVERLAP, source=source)
            with_vectors = await embed_chunks(
                chunks,
                runtime.provider,
                runtime.model,
                batch_size=cfg.RAG_EMBED_BATCH_SIZE,
                timeout_ms=deadline.remaining_ms(cap=cfg.PROVIDER_TIMEOUT_MS),
            )
            await deps.store.upsert_document(record.user_id, f"{vertical.name}:{record.id}", source, with_vectors)
        except JobTimeoutError:
            raise
        except Exception as e:
            logger.error(
                f"[rag] Failed to store job input: {e}",
                extra={"job_id": record.id, "provider": runtime.provider_name, "model": runtime.model},
            )

    if top_k <= 0:
        return "", []

    deadline.check()
    await _publish(deps, record.id, 35, "retrieving", "Retrieving relevant context...")
    try:
        retrieved = await retrieve_top_k(
            deps.store,
            record.user_id,
            guarded_text,
            top_k,
            runtime.provider,
            runtime.model,
            timeout_ms=deadline.remaining_ms(cap=cfg.PROVIDER_TIMEOUT_MS),
        )
    except JobTimeoutError:
        raise
    except Exception as e:
        logger.error(
            f"[rag] Retrieval failed: {e}",
            extra={"job_id": record.id, "provider": runtime.provider_name, "model": runtime.model},
        )
        return "", []

    built = build_context(retrieved)
    return built.context, built.citations


async def _enrich(validator, vertical, input_text, context, output, generate, max_tokens, temperature, job_id):
    """Ask once for a fuller answer; keep it only if it scores strictly higher."""
    messages = build_enrichment_messages(vertical, input_text, context, output)
    if not messages:
        return output

    try:
        enriched_text = await generate(messages, max_tokens, temperature)
        enriched = validator.check(enriched_text)
        if vertical.post_process is not None:
            enriched = vertical.post_process(enriched)
    except JobTimeoutError:
        raise
    except Exception as e:
        logger.error(
            f"[pipeline] Enrichment pass failed: {e}",
            extra={"job_id": job_id, "vertical_id": vertical.id},
        )
        return output

    base_score = completeness_score(vertical, output)
    enriched_score = completeness_score(vertical, enriched)
    if enriched_score > base_score:
        logger.info(
            "[pipeline] Applied sparse output enrichment pass",
            extra={"job_id": job_id, "base_score": base_score, "enriched_score": enriched_score},
        )
        return enriched

    logger.info(
        "[pipeline] Enrichment pass did not improve structured completeness",
        extra={"job_id": job_id, "base_score": base_score, "enriched_score": enriched_score},
    )
    return output
