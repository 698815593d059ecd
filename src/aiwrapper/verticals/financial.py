"""Financial report analysis vertical."""

from typing import Any, Dict, List

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

FINANCIAL_DISCLAIMER = "This analysis is informational and not investment advice."

FINANCIAL_SCHEMA_HINT = (
    '{"executive_summary": string, "key_metrics": [{"metric": string, "value": string, '
    '"interpretation": string}], "risk_flags": string[], "recommendations": string[], "disclaimer": string}.'
)


class FinancialMetric(BaseModel):
    metric: NonEmptyStr
    value: NonEmptyStr
    interpretation: NonEmptyStr


class FinancialReportAnalysis(BaseModel):
    executive_summary: NonEmptyStr
    key_metrics: List[FinancialMetric] = Field(default_factory=list)
    risk_flags: List[NonEmptyStr] = Field(default_factory=list)
    recommendations: List[NonEmptyStr] = Field(default_factory=list)
    disclaimer: NonEmptyStr = FINANCIAL_DISCLAIMER


def financial_prompt(ctx: PromptContext) -> List[ChatMessage]:
    return [
        ChatMessage(role="system", content=" ".join([
            "You are a senior equity research analyst specializing in forensic financial statement review.",
            "You must return JSON only.",
            "Do not provide market manipulation or insider guidance.",
        ])),
        ChatMessage(role="user", content=join_sections(
            "Respond as strict JSON with keys:",
            FINANCIAL_SCHEMA_HINT,
            "Do not wrap output in markdown code fences.",
            'Do not place JSON inside "executive_summary"; it must be plain text.',
            "Provide at least 4 key_metrics, 4 risk_flags, and 4 recommendations when evidence exists.",
            locale_narrative_instruction(ctx.locale) if ctx.locale else "",
            context_section(ctx.context),
            f"Financial report content:\n{ctx.input_text}",
        )),
    ]


def ensure_disclaimer(output: Dict[str, Any]) -> Dict[str, Any]:
    return {**output, "disclaimer": output.get("disclaimer") or FINANCIAL_DISCLAIMER}


financial_report_analysis = VerticalConfig(
    id="financial_report_analysis",
    name="Financial Report Analysis",
    input_types_allowed=["text", "pdf"],
    rag=RagDefaults(enabled=True, store_input_as_docs=True, top_k=8),
    prompt_template=financial_prompt,
    output_schema=FinancialReportAnalysis,
    post_process=ensure_disclaimer,
    required_keys=["executive_summary", "key_metrics", "risk_flags", "recommendations"],
    summary_field="executive_summary",
    min_max_tokens=2400,
    completeness=CompletenessSpec(
        summary_field="executive_summary",
        weighted_arrays={"key_metrics": 2, "risk_flags": 1, "recommendations": 1},
        minimums={"key_metrics": 2, "risk_flags": 2, "recommendations": 2},
        threshold=8,
        min_input_length=180,
        enrichment_min_max_tokens=3400,
        enrichment_system_prompt=(
            "You are a senior equity research analyst specializing in forensic financial statement review. "
            "Return strict JSON only. Do not use markdown code fences."
        ),
        enrichment_schema_hint=FINANCIAL_SCHEMA_HINT,
        enrichment_requirements=[
            "Completeness requirements: include at least 4 key_metrics, 4 risk_flags, and 4 recommendations when evidence exists.",
        ],
        content_label="Financial report content:",
    ),
    guardrails=create_guardrails([
        RefusalRule(
            id="finance_insider",
            pattern=r"\binsider trading|non-public material information|mnpi\b",
            reason="Refuses requests involving insider trading.",
        ),
        RefusalRule(
            id="finance_manipulation",
            pattern=r"\bpump and dump|manipulate (the )?market|wash trading\b",
            reason="Refuses assistance with market manipulation.",
        ),
    ]),
)
