"""Unit tests for output extraction, repair, validation and completeness."""

import json

import pytest
from pydantic import ValidationError
from unittest.mock import AsyncMock

from aiwrapper.contracts import (
    ATTEMPT_FAILED_ACTION,
    CORRECTION_INSTRUCTION,
    FINAL_FAILED_ACTION,
    OutputContractValidator,
    build_enrichment_messages,
    completeness_score,
    extract_json_payload,
    extract_string_field,
    has_structured_signal,
    repair,
    repair_control_characters,
    should_attempt_enrichment,
    validate_output,
)
from aiwrapper.providers.base import ChatMessage
from aiwrapper.utils.errors import STRUCTURED_OUTPUT_ERROR_CODE, StructuredOutputValidationFailure
from aiwrapper.verticals import get_vertical

LEGAL = get_vertical("legal_contract_analysis")
MEDICAL = get_vertical("medical_research_summary")
FINANCIAL = get_vertical("financial_report_analysis")
GENERIC = get_vertical("generic_analysis")

CONTRACT_TEXT = (
    "This Master Services Agreement is entered into by Acme Corp and Beta LLC. The supplier shall deliver "
    "services monthly. The customer shall pay invoices within 30 days. Either party may terminate on 90 days "
    "notice. Liability is uncapped for indirect damages. Confidential information must be protected for five years."
)


class TestExtraction:
    def test_fenced_block(self):
        assert extract_json_payload('Here you go:\n```json\n{"answer": "x"}\n```') == {"answer": "x"}

    def test_outer_braces(self):
        assert extract_json_payload('Sure! {"answer": "y", "key_points": []} Thanks.') == {"answer": "y", "key_points": []}

    def test_raw_newline_inside_string(self):
        assert extract_json_payload('{"answer": "line one\nline two"}') == {"answer": "line one\nline two"}

    def test_prose_falls_back_to_answer(self):
        assert extract_json_payload("  just prose  ") == {"answer": "just prose", "key_points": []}

    def test_empty_text(self):
        assert extract_json_payload("") == {"answer": "", "key_points": []}

    def test_control_characters_outside_strings_are_kept(self):
        assert repair_control_characters('{\n"a": "b\tc"\n}') == '{\n"a": "b\\tc"\n}'


class TestRepair:
    def test_nested_fenced_summary_is_unwrapped(self):
        nested = '```json\n{"summary":"Clean summary","key_risks":[],"obligations":["Pay within 30 days"],"recommendations":["Cap liability"]}\n```'
        raw = json.dumps({"summary": nested, "key_risks": [], "obligations": [], "recommendations": []})

        output = validate_output(LEGAL.output_schema, LEGAL, raw)

        assert output["summary"] == "Clean summary"
        assert output["obligations"] == ["Pay within 30 days"]
        assert output["recommendations"] == ["Cap liability"]
        assert output["disclaimer"] == "This is an AI analysis and not legal advice."

    def test_truncated_summary_string(self):
        assert extract_string_field('{"summary": "Cut off mid sentence', "summary") == "Cut off mid sentence"

    def test_top_level_values_win(self):
        raw = json.dumps({
            "summary": "Top level summary.",
            "answer": json.dumps({"summary": "Nested summary.", "obligations": ["Nested obligation"]}),
            "obligations": ["Top obligation"],
        })
        candidate = repair(raw, LEGAL)

        assert candidate["summary"] == "Top level summary."
        assert candidate["obligations"] == ["Top obligation"]

    def test_answer_nested_record_fills_gaps(self):
        raw = json.dumps({"answer": json.dumps({
            "summary": "From answer.",
            "key_risks": [{"clause": "Liability", "risk_level": "severe", "explanation": "Uncapped."}],
        })})
        candidate = repair(raw, LEGAL)

        assert candidate["summary"] == "From answer."
        assert candidate["key_risks"] == [{"clause": "Liability", "risk_level": "medium", "explanation": "Uncapped."}]

    def test_medical_constant_is_forced(self):
        candidate = repair(json.dumps({"evidence_summary": "RCT of 200.", "not_medical_advice": False}), MEDICAL)

        assert candidate["not_medical_advice"] is True
        assert candidate["research_question"] == "Research question not specified."

    def test_generic_is_identity(self):
        payload = {"foo": "bar"}
        assert repair("ignored", GENERIC, payload) is payload


class TestValidateOutput:
    def test_generic_prose_is_valid(self):
        assert validate_output(GENERIC.output_schema, GENERIC, "DNS maps names to addresses.") == {
            "answer": "DNS maps names to addresses.",
            "key_points": [],
        }

    def test_invalid_raises_validation_error(self):
        with pytest.raises(ValidationError):
            validate_output(GENERIC.output_schema, GENERIC, '{"foo": "bar"}')

    def test_structured_signal(self):
        assert has_structured_signal({"summary": "x"}, LEGAL)
        assert not has_structured_signal({"foo": "bar"}, LEGAL)
        assert not has_structured_signal(["summary"], LEGAL)


class TestOutputContractValidator:
    MESSAGES = [ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="analyze")]

    @pytest.mark.asyncio
    async def test_valid_first_response_needs_no_retry(self):
        regenerate = AsyncMock()
        validator = OutputContractValidator(LEGAL)

        output = await validator.enforce(self.MESSAGES, json.dumps({"summary": "Fine."}), regenerate)

        assert output["summary"] == "Fine."
        regenerate.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_corrective_retry(self):
        audit = AsyncMock()
        regenerate = AsyncMock(return_value=json.dumps({"summary": "Fixed.", "obligations": ["Pay"]}))
        validator = OutputContractValidator(LEGAL, audit_writer=audit, user_id="u1", job_id="j1")

        output = await validator.enforce(self.MESSAGES, "I cannot produce JSON", regenerate)

        assert output["summary"] == "Fixed."
        regenerate.assert_awaited_once()
        retry_messages = regenerate.await_args.args[0]
        assert retry_messages[:2] == self.MESSAGES
        assert retry_messages[2] == ChatMessage(role="assistant", content="I cannot produce JSON")
        assert retry_messages[3].content == CORRECTION_INSTRUCTION
        audit.assert_awaited_once()
        assert audit.await_args.args[1] == ATTEMPT_FAILED_ACTION

    @pytest.mark.asyncio
    async def test_two_failures_raise_and_write_two_audit_events(self):
        audit = AsyncMock()
        regenerate = AsyncMock(return_value='{"still":"invalid"}')
        validator = OutputContractValidator(LEGAL, audit_writer=audit, user_id="u1", job_id="j1")

        with pytest.raises(StructuredOutputValidationFailure) as exc_info:
            await validator.enforce(self.MESSAGES, '{"foo":"bar"}', regenerate)

        assert [c.args[1] for c in audit.await_args_list] == [ATTEMPT_FAILED_ACTION, FINAL_FAILED_ACTION]
        payload = exc_info.value.to_payload()
        assert payload["code"] == STRUCTURED_OUTPUT_ERROR_CODE
        assert payload["verticalId"] == "legal_contract_analysis"
        assert payload["stage"] == "retry"
        assert payload["retryAttempted"] is True
        assert payload["rawPreview"] == '{"still":"invalid"}'
        assert payload["issues"]

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_break_enforcement(self):
        audit = AsyncMock(side_effect=RuntimeError("db down"))
        regenerate = AsyncMock(return_value=json.dumps({"answer": "ok"}))
        validator = OutputContractValidator(GENERIC, audit_writer=audit, user_id="u1")

        output = await validator.enforce(self.MESSAGES, '{"foo": "bar"}', regenerate)

        assert output == {"answer": "ok", "key_points": []}


class TestCompleteness:
    SPARSE = {"summary": "Short.", "key_risks": [], "obligations": [], "recommendations": []}

    def test_score(self):
        output = {
            "summary": "S",
            "key_risks": [{}] * 8,
            "obligations": ["a"],
            "recommendations": ["a", "b"],
        }
        # 1 + 6*2 + 1 + 2
        assert completeness_score(LEGAL, output) == 16
        assert completeness_score(GENERIC, {"answer": "x"}) == 0

    def test_sparse_legal_output_with_long_input_is_enriched(self):
        assert len(CONTRACT_TEXT) > 220
        assert should_attempt_enrichment(LEGAL, CONTRACT_TEXT, self.SPARSE)

    def test_short_input_is_not_enriched(self):
        assert not should_attempt_enrichment(LEGAL, "Short contract.", self.SPARSE)

    def test_generic_is_never_enriched(self):
        assert not should_attempt_enrichment(GENERIC, CONTRACT_TEXT * 3, {"answer": "x", "key_points": []})

    def test_full_output_is_not_enriched(self):
        output = {
            "summary": "S",
            "key_risks": [{}, {}, {}],
            "obligations": ["a", "b"],
            "recommendations": ["a", "b"],
        }
        assert not should_attempt_enrichment(LEGAL, CONTRACT_TEXT, output)

    def test_enrichment_messages(self):
        messages = build_enrichment_messages(FINANCIAL, "Revenue grew 12%.", "[C1] source=x chunk=0\ntext", {"x": 1})

        assert [m.role for m in messages] == ["system", "user"]
        user = messages[1].content
        assert user.startswith("The prior response was too sparse and left structured arrays mostly empty.")
        assert "Revenue grew 12%." in user
        assert "Retrieved context:\n[C1]" in user
        assert user.endswith('Previous sparse output:\n{"x": 1}')
