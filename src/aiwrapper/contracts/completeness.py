"""Structured-output completeness scoring and the sparse-output enrichment prompt."""

import json
from typing import Any, Dict, List, Optional

from ..providers.base import ChatMessage
from ..verticals.types import context_section

DEFAULT_ENRICHMENT_MAX_TOKENS = 2600
ENRICHMENT_MAX_TEMPERATURE = 0.3


def _array_length(value: Any) -> int:
    return len(value) if isinstance(value, list) else 0


def completeness_score(vertical, output: Any) -> int:
    spec = vertical.completeness
    if spec is None or not isinstance(output, dict):
        return 0

    summary = output.get(spec.summary_field)
    score = 1 if isinstance(summary, str) and summary.strip() else 0
    for field, weight in spec.weighted_arrays.items():
        score += min(_array_length(output.get(field)), spec.MAX_COUNTED_ITEMS) * weight
    return score


def is_underfilled(vertical, output: Any) -> bool:
    spec = vertical.completeness
    if spec is None:
        return False
    if not isinstance(output, dict):
        return True
    return any(_array_length(output.get(field)) < minimum for field, minimum in spec.minimums.items())


def should_attempt_enrichment(vertical, input_text: str, output: Any) -> bool:
    """Whether a second, enrichment-focused generation is worth a provider call."""
    spec = vertical.completeness
    if spec is None:
        return False
    if len(input_text.strip()) < spec.min_input_length:
        return False
    if is_underfilled(vertical, output):
        return True
    return completeness_score(vertical, output) < spec.threshold


def enrichment_max_tokens(vertical, max_tokens: int) -> int:
    spec = vertical.completeness
    floor = spec.enrichment_min_max_tokens if spec is not None else DEFAULT_ENRICHMENT_MAX_TOKENS
    return max(max_tokens, floor)


def enrichment_temperature(temperature: float) -> float:
    return min(temperature, ENRICHMENT_MAX_TEMPERATURE)


def build_enrichment_messages(
    vertical, input_text: str, context: str, previous_output: Optional[Dict[str, Any]]
) -> List[ChatMessage]:
    spec = vertical.completeness
    if spec is None:
        return []

    sections = [
        "The prior response was too sparse and left structured arrays mostly empty.",
        "Return JSON with keys:",
        spec.enrichment_schema_hint,
        *spec.enrichment_requirements,
        spec.content_label,
        input_text,
        context_section(context),
        f"Previous sparse output:\n{json.dumps(previous_output, ensure_ascii=False)}",
    ]
    return [
        ChatMessage(role="system", content=spec.enrichment_system_prompt),
        ChatMessage(role="user", content="\n\n".join(s for s in sections if s)),
    ]
