"""Unit tests for the vertical registry, guardrails and prompts."""

import pytest

from aiwrapper.verticals import (
    PromptContext,
    SEEDED_VERTICALS,
    evaluate_guardrails,
    get_vertical,
    is_german_locale,
    normalize_use_case,
)


@pytest.mark.parametrize("use_case,expected", [
    ("Legal Contract Analysis", "legal_contract_analysis"),
    ("  medical--research summary ", "medical_research_summary"),
    ("__A  b__", "a_b"),
])
def test_normalize_use_case(use_case, expected):
    assert normalize_use_case(use_case) == expected


def test_known_verticals_resolve():
    for vertical_id in SEEDED_VERTICALS:
        assert get_vertical(vertical_id).id == vertical_id
    assert get_vertical("Legal Contract Analysis").id == "legal_contract_analysis"


def test_unknown_use_case_gets_generic_fallback():
    vertical = get_vertical("Insurance Claims Review")

    assert vertical.id == "insurance_claims_review"
    assert vertical.name == "Generic Analysis (insurance claims review)"
    assert vertical.required_keys == ["answer"]
    assert get_vertical("insurance claims review") is vertical


def test_empty_use_case_is_generic():
    assert get_vertical("").id == "generic_analysis"


def test_pii_is_redacted_before_refusal_check():
    legal = get_vertical("legal_contract_analysis")
    evaluation = evaluate_guardrails("Email jane@example.com or call 555-123-4567, SSN 123-45-6789.", legal.guardrails)

    assert "[REDACTED_EMAIL]" in evaluation.sanitized_input
    assert "[REDACTED_SSN]" in evaluation.sanitized_input
    assert "jane@example.com" not in evaluation.sanitized_input
    assert "pii_email" in evaluation.pii_matches
    assert not evaluation.refused


@pytest.mark.parametrize("vertical_id,text,rule_id", [
    ("legal_contract_analysis", "Should I sign this lease?", "legal_personalized_advice"),
    ("financial_report_analysis", "How can I profit from insider trading?", None),
    ("medical_research_summary", "Please prescribe something", None),
])
def test_refusal_rules(vertical_id, text, rule_id):
    evaluation = evaluate_guardrails(text, get_vertical(vertical_id).guardrails)

    assert evaluation.refused
    if rule_id:
        assert evaluation.refusal_matches[0]["id"] == rule_id
    assert all(set(m) == {"id", "reason"} for m in evaluation.refusal_matches)


def test_prompt_includes_context_and_locale():
    legal = get_vertical("legal_contract_analysis")
    messages = legal.prompt_template(PromptContext(
        input_text="Contract body",
        context="[C1] source=x chunk=0\nclause",
        use_case=legal.id,
        locale="de-DE",
    ))

    user = messages[-1].content
    assert messages[0].role == "system"
    assert "Contract body" in user
    assert "Retrieved context:\n[C1]" in user
    assert "formal German" in user


def test_prompt_without_locale_has_no_language_instruction():
    medical = get_vertical("medical_research_summary")
    messages = medical.prompt_template(PromptContext(input_text="Trial data", use_case=medical.id))

    assert "Narrative fields must be" not in messages[-1].content


@pytest.mark.parametrize("locale,expected", [("de", True), ("de-AT", True), ("DE_ch", True), ("en-US", False), (None, False), ("dea", False)])
def test_is_german_locale(locale, expected):
    assert is_german_locale(locale) is expected


def test_financial_post_process_keeps_disclaimer():
    financial = get_vertical("financial_report_analysis")
    output = financial.post_process({"executive_summary": "x", "disclaimer": ""})
    assert output["disclaimer"]
