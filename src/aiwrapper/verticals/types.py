"""Vertical configuration types."""

import re
from typing import Annotated, Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, Field

from ..providers.base import ChatMessage

NonEmptyStr = Annotated[str, Field(min_length=1)]


class PromptContext(BaseModel):
    input_text: str
    context: str = ""
    use_case: str
    locale: Optional[str] = None


PromptTemplate = Callable[[PromptContext], List[ChatMessage]]


class RagDefaults:
    def __init__(self, enabled: bool, store_input_as_docs: bool, top_k: int):
        self.enabled = enabled
        self.store_input_as_docs = store_input_as_docs
        self.top_k = top_k


class PiiRule:
    def __init__(self, id: str, pattern: re.Pattern, replacement: str, description: str = ""):
        self.id = id
        self.pattern = pattern
        self.replacement = replacement
        self.description = description


class RefusalRule:
    def __init__(self, id: str, pattern: str, reason: str):
        self.id = id
        self.pattern = re.compile(pattern, re.IGNORECASE)
        self.reason = reason


class Guardrails:
    def __init__(self, pii_rules: List[PiiRule], refusal_rules: List[RefusalRule]):
        self.pii_rules = pii_rules
        self.refusal_rules = refusal_rules


class CompletenessSpec:
    """How populated a structured output must be before it is accepted as-is.

    ``weighted_arrays`` maps array fields to their per-item weight; each
    array contributes at most 6 items. ``minimums`` are per-array floors below
    which the output counts as underfilled regardless of score.
    """

    MAX_COUNTED_ITEMS = 6

    def __init__(
        self,
        summary_field: str,
        weighted_arrays: Dict[str, int],
        minimums: Dict[str, int],
        threshold: int,
        min_input_length: int,
        enrichment_min_max_tokens: int,
        enrichment_system_prompt: str,
        enrichment_schema_hint: str,
        enrichment_requirements: List[str],
        content_label: str,
    ):
        self.summary_field = summary_field
        self.weighted_arrays = weighted_arrays
        self.minimums = minimums
        self.threshold = threshold
        self.min_input_length = min_input_length
        self.enrichment_min_max_tokens = enrichment_min_max_tokens
        self.enrichment_system_prompt = enrichment_system_prompt
        self.enrichment_schema_hint = enrichment_schema_hint
        self.enrichment_requirements = enrichment_requirements
        self.content_label = content_label


class VerticalConfig:
    """A named analysis domain: prompt, output schema, guardrails and contract data."""

    def __init__(
        self,
        id: str,
        name: str,
        input_types_allowed: List[str],
        rag: RagDefaults,
        prompt_template: PromptTemplate,
        output_schema: Type[BaseModel],
        guardrails: Guardrails,
        required_keys: List[str],
        summary_field: Optional[str] = None,
        post_process: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None,
        completeness: Optional[CompletenessSpec] = None,
        min_max_tokens: int = 0,
    ):
        self.id = id
        self.name = name
        self.input_types_allowed = input_types_allowed
        self.rag = rag
        self.prompt_template = prompt_template
        self.output_schema = output_schema
        self.guardrails = guardrails
        self.required_keys = required_keys
        self.summary_field = summary_field
        self.post_process = post_process
        self.completeness = completeness
        self.min_max_tokens = min_max_tokens

    def renamed(self, id: str, name: str) -> "VerticalConfig":
        """Copy of this vertical under another identity."""
        return VerticalConfig(
            id=id,
            name=name,
            input_types_allowed=list(self.input_types_allowed),
            rag=self.rag,
            prompt_template=self.prompt_template,
            output_schema=self.output_schema,
            guardrails=self.guardrails,
            required_keys=list(self.required_keys),
            summary_field=self.summary_field,
            post_process=self.post_process,
            completeness=self.completeness,
            min_max_tokens=self.min_max_tokens,
        )

    def __repr__(self) -> str:
        return f"<VerticalConfig id={self.id}>"


_GERMAN = re.compile(r"^de(?:[-_]|$)", re.IGNORECASE)


def is_german_locale(locale: Optional[str]) -> bool:
    if not locale:
        return False
    return _GERMAN.search(locale.strip()) is not None


def locale_narrative_instruction(locale: Optional[str]) -> str:
    if is_german_locale(locale):
        return 'Narrative fields must be in formal German using "Sie".'
    return "Narrative fields must be in English."


def join_sections(*sections: str) -> str:
    """Join non-empty prompt sections with blank lines."""
    return "\n\n".join(s for s in sections if s)


def context_section(context: str) -> str:
    return f"Retrieved context:\n{context}" if context else ""
