"""Legal contract analysis vertical."""

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

LEGAL_DISCLAIMER = "This is an AI analysis and not legal advice."

LEGAL_SYSTEM_PROMPT = " ".join([
    "You are a senior contract lawyer and commercial risk analyst.",
    "Analyze ONLY the provided contract text and do not invent clauses, parties, dates, or amounts.",
    "You provide document analysis, not legal advice, and must not recommend illegal actions or evasion.",
    "You must return JSON only. Do not wrap output in markdown code fences.",
    'Do not place JSON inside "summary"; it must be plain prose.',
])

LEGAL_SCHEMA_HINT = (
    '{"summary": string, "key_risks": [{"clause": string, "risk_level": "low|medium|high", '
    '"explanation": string}], "obligations": string[], "recommendations": string[], "disclaimer": string}.'
)


class LegalRisk(BaseModel):
    clause: NonEmptyStr
    risk_level: Literal["low", "medium", "high"]
    explanation: NonEmptyStr


class LegalContractAnalysis(BaseModel):
    summary: NonEmptyStr
    key_risks: List[LegalRisk] = Field(default_factory=list)
    obligations: List[NonEmptyStr] = Field(default_factory=list)
    recommendations: List[NonEmptyStr] = Field(default_factory=list)
    disclaimer: NonEmptyStr = LEGAL_DISCLAIMER


def legal_prompt(ctx: PromptContext) -> List[ChatMessage]:
    return [
        ChatMessage(role="system", content=LEGAL_SYSTEM_PROMPT),
        ChatMessage(role="user", content=join_sections(
            "Respond as strict JSON with exactly these keys:",
            LEGAL_SCHEMA_HINT,
            "Quality requirements:\n"
            "- summary: 2-4 sentences covering contract type, parties and the commercial balance.\n"
            "- key_risks: cover liability, termination, IP, confidentiality and payment where present.\n"
            "- obligations: each obligation names the responsible party.\n"
            "- recommendations: concrete clause revisions or negotiation moves.",
            locale_narrative_instruction(ctx.locale) if ctx.locale else "",
            context_section(ctx.context),
            f"Contract content:\n{ctx.input_text}",
        )),
    ]


legal_contract_analysis = VerticalConfig(
    id="legal_contract_analysis",
    name="Legal Contract Analysis",
    input_types_allowed=["text", "pdf"],
    rag=RagDefaults(enabled=True, store_input_as_docs=True, top_k=8),
    prompt_template=legal_prompt,
    output_schema=LegalContractAnalysis,
    required_keys=["summary", "key_risks", "obligations", "recommendations"],
    summary_field="summary",
    min_max_tokens=2200,
    completeness=CompletenessSpec(
        summary_field="summary",
        weighted_arrays={"key_risks": 2, "obligations": 1, "recommendations": 1},
        minimums={"key_risks": 2, "obligations": 1, "recommendations": 2},
        threshold=8,
        min_input_length=220,
        enrichment_min_max_tokens=3000,
        enrichment_system_prompt=(
            "You are a senior contracts counsel specializing in commercial risk review. "
            "Return strict JSON only. Do not use markdown code fences."
        ),
        enrichment_schema_hint=LEGAL_SCHEMA_HINT,
        enrichment_requirements=[
            "Completeness requirements: include at least 4 key_risks and at least 3 recommendations when evidence exists.",
        ],
        content_label="Contract content:",
    ),
    guardrails=create_guardrails([
        RefusalRule(
            id="legal_personalized_advice",
            pattern=r"\b(should i sign|what legal action should i take|represent me|how do i win my lawsuit)\b",
            reason="Refuses personalized legal advice or representation requests.",
        ),
        RefusalRule(
            id="legal_fraud",
            pattern=r"\bforge|falsify|backdate|fabricate\b",
            reason="Refuses assistance with fraudulent document activity.",
        ),
        RefusalRule(
            id="legal_evasion",
            pattern=r"\bhide from regulators|evade the law|bypass compliance\b",
            reason="Refuses assistance intended to evade legal obligations.",
        ),
    ]),
)
