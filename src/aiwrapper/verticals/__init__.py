from .types import (
    PromptContext,
    RagDefaults,
    PiiRule,
    RefusalRule,
    Guardrails,
    CompletenessSpec,
    VerticalConfig,
    is_german_locale,
    locale_narrative_instruction,
)
from .guardrails import COMMON_PII_RULES, GuardrailEvaluation, create_guardrails, evaluate_guardrails
from .registry import VERTICALS, SEEDED_VERTICALS, normalize_use_case, get_vertical, fallback_vertical

__all__ = [
    "PromptContext",
    "RagDefaults",
    "PiiRule",
    "RefusalRule",
    "Guardrails",
    "CompletenessSpec",
    "VerticalConfig",
    "is_german_locale",
    "locale_narrative_instruction",
    "COMMON_PII_RULES",
    "GuardrailEvaluation",
    "create_guardrails",
    "evaluate_guardrails",
    "VERTICALS",
    "SEEDED_VERTICALS",
    "normalize_use_case",
    "get_vertical",
    "fallback_vertical",
]
