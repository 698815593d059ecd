"""PII redaction and refusal evaluation applied before any generation."""

import logging
import re
from typing import List

from .types import Guardrails, PiiRule, RefusalRule

logger = logging.getLogger(__name__)

COMMON_PII_RULES = [
    PiiRule(
        id="pii_email",
        pattern=re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE),
        replacement="[REDACTED_EMAIL]",
        description="Masks email addresses.",
    ),
    PiiRule(
        id="pii_phone",
        pattern=re.compile(r"\b(?:\+?\d{1,2}[-.\s]?)?(?:\(?\d{3}\)?[-.\s]?){2}\d{4}\b"),
        replacement="[REDACTED_PHONE]",
        description="Masks phone numbers.",
    ),
    PiiRule(
        id="pii_ssn",
        pattern=re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
        replacement="[REDACTED_SSN]",
        description="Masks US social security numbers.",
    ),
]


class GuardrailEvaluation:
    def __init__(self, sanitized_input: str, pii_matches: List[str], refusal_matches: List[dict]):
        self.sanitized_input = sanitized_input
        self.pii_matches = pii_matches
        self.refusal_matches = refusal_matches

    @property
    def refused(self) -> bool:
        return bool(self.refusal_matches)


def create_guardrails(refusal_rules: List[RefusalRule]) -> Guardrails:
    return Guardrails(pii_rules=list(COMMON_PII_RULES), refusal_rules=refusal_rules)


def evaluate_guardrails(text: str, guardrails: Guardrails) -> GuardrailEvaluation:
    """
    Redact PII, then check refusal rules against the redacted text.

    Returns:
        GuardrailEvaluation with the sanitized text, matched PII rule ids and
        matched refusal rules as ``{"id", "reason"}`` dicts
    """
    sanitized = text
    pii_matches = []
    refusal_matches = []

    for rule in guardrails.pii_rules:
        if not rule.pattern.search(sanitized):
            continue
        pii_matches.append(rule.id)
        sanitized = rule.pattern.sub(rule.replacement, sanitized)

    for rule in guardrails.refusal_rules:
        if rule.pattern.search(sanitized):
            refusal_matches.append({"id": rule.id, "reason": rule.reason})

    if pii_matches or refusal_matches:
        logger.info(
            "[guardrails] Rules matched",
            extra={"pii_rules": pii_matches, "refusal_rules": [m["id"] for m in refusal_matches]},
        )

    return GuardrailEvaluation(sanitized, pii_matches, refusal_matches)
