"""Medical research summary vertical."""

from typing import List, Literal

from pydantic import BaseModel, Field

from ..providers.base import ChatMessage
from .guardrails import create_guardrails
from .types import (
    CompletenessSpec,
    NonEmptyStr,
    PromptContext,
    RagDefaults,
    RefusalRule,
    VerticalConfig,
    context_section,
    join_sections,
    locale_narrative_instruction,
)

MEDICAL_SYSTEM_PROMPT = " ".join([
    "You are a clinical research methodologist and evidence synthesis specialist with 15+ years in "
    "systematic review, meta-analysis, and biomedical research evaluation.",
    "Report study design, sample size, population, primary endpoints, effect sizes with confidence "
    "intervals and p-values, and NNT/NNH where calculable.",
    "Distinguish statistical significance from clinical significance.",
    "Identify bias types (selection, performance, detection, attrition, reporting) and generalizability constraints.",
    "Do not provide diagnosis or treatment plans.",
    "You must return JSON only. Do not wrap output in markdown code fences.",
    'Do not place JSON inside "evidence_summary"; it must be plain prose.',
])

MEDICAL_SCHEMA_HINT = (
    '{"research_question": string, "evidence_summary": string, "key_findings": string[], '
    '"limitations": string[], "safety_notes": string[], "not_medical_advice": true}.'
)


class MedicalResearchSummary(BaseModel):
    research_question: NonEmptyStr
    evidence_summary: NonEmptyStr
    key_findings: List[NonEmptyStr] = Field(default_factory=list)
    limitations: List[NonEmptyStr] = Field(default_factory=list)
    safety_notes: List[NonEmptyStr] = Field(default_factory=list)
    not_medical_advice: Literal[True] = True


def medical_prompt(ctx: PromptContext) -> List[ChatMessage]:
    return [
        ChatMessage(role="system", content=MEDICAL_SYSTEM_PROMPT),
        ChatMessage(role="user", content=join_sections(
            "Respond as strict JSON with exactly these keys:",
            MEDICAL_SCHEMA_HINT,
            "Quality requirements:\n"
            "- research_question: one precise sentence stating what the study investigated.\n"
            "- evidence_summary: 2-4 sentences with design, sample size, primary endpoint result and clinical significance.\n"
            "- key_findings: minimum 5 items, quantified where available.\n"
            "- limitations: minimum 4 items naming the specific bias or methodological weakness.\n"
            "- safety_notes: minimum 4 items with incidence rates and monitoring requirements where reported.\n"
            "- not_medical_advice: always true.",
            locale_narrative_instruction(ctx.locale) if ctx.locale else "",
            context_section(ctx.context),
            f"Medical research content:\n{ctx.input_text}",
        )),
    ]


medical_research_summary = VerticalConfig(
    id="medical_research_summary",
    name="Medical Research Summary",
    input_types_allowed=["text", "pdf"],
    rag=RagDefaults(enabled=True, store_input_as_docs=True, top_k=10),
    prompt_template=medical_prompt,
    output_schema=MedicalResearchSummary,
    required_keys=["research_question", "evidence_summary", "key_findings", "limitations", "safety_notes"],
    summary_field="evidence_summary",
    min_max_tokens=2200,
    completeness=CompletenessSpec(
        summary_field="evidence_summary",
        weighted_arrays={"key_findings": 2, "limitations": 1, "safety_notes": 1},
        minimums={"key_findings": 3, "limitations": 2, "safety_notes": 2},
        threshold=9,
        min_input_length=200,
        enrichment_min_max_tokens=3000,
        enrichment_system_prompt=(
            "You are a clinical research methodologist and evidence synthesis specialist. "
            "Return strict JSON only. Do not use markdown code fences."
        ),
        enrichment_schema_hint=MEDICAL_SCHEMA_HINT,
        enrichment_requirements=[
            "Completeness requirements: include at least 5 key_findings, 4 limitations, and 4 safety_notes when evidence exists.",
            "Prioritize study design, sample size, population, endpoints, effect direction/magnitude, "
            "and confidence limits when available.",
        ],
        content_label="Medical research content:",
    ),
    guardrails=create_guardrails([
        RefusalRule(
            id="medical_direct_treatment",
            pattern=r"\bdiagnose me|prescribe|dosage for me|how much should i take\b",
            reason="Refuses direct personalized diagnosis or prescription requests.",
        ),
        RefusalRule(
            id="medical_harm",
            pattern=r"\bharm myself|self-harm|suicide method\b",
            reason="Refuses requests involving self-harm instructions.",
        ),
    ]),
)
