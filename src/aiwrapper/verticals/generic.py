"""Generic analysis vertical, also the fallback for unknown use cases."""

from typing import List

from pydantic import BaseModel, Field

from ..providers.base import ChatMessage
from .guardrails import create_guardrails
from .types import (
    NonEmptyStr,
    PromptContext,
    RagDefaults,
    RefusalRule,
    VerticalConfig,
    context_section,
    join_sections,
    locale_narrative_instruction,
)


class GenericAnalysis(BaseModel):
    answer: NonEmptyStr
    key_points: List[str] = Field(default_factory=list)


def generic_prompt(ctx: PromptContext) -> List[ChatMessage]:
    return [
        ChatMessage(role="system", content="You are a general purpose AI analysis assistant. Return JSON only."),
        ChatMessage(role="user", content=join_sections(
            "Use case:",
            ctx.use_case,
            'Respond as strict JSON: {"answer": string, "key_points": string[]}.',
            locale_narrative_instruction(ctx.locale) if ctx.locale else "",
            context_section(ctx.context),
            f"Input:\n{ctx.input_text}",
        )),
    ]


generic_analysis = VerticalConfig(
    id="generic_analysis",
    name="Generic Analysis",
    input_types_allowed=["text", "pdf"],
    rag=RagDefaults(enabled=False, store_input_as_docs=False, top_k=6),
    prompt_template=generic_prompt,
    output_schema=GenericAnalysis,
    required_keys=["answer"],
    summary_field="answer",
    guardrails=create_guardrails([
        RefusalRule(
            id="generic_violent_harm",
            pattern=r"\bmake a bomb|build a weapon|kill someone\b",
            reason="Refuses requests to facilitate violent harm.",
        ),
    ]),
)
