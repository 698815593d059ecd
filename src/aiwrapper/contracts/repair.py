"""Heuristic text-to-structure recovery, one strategy per vertical.

This is a lossy best-effort stage, not a JSON parser. It handles the common
ways models break the contract: the whole answer wrapped inside the summary
string (fenced or not), answers nested under ``answer``, and truncated
strings missing their closing quote. Recovered values only fill gaps; values
that are already valid at the top level are kept.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from .extraction import extract_json_payload

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_FALLBACK = "AI response generated."

_FENCE_ONLY = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)
_QUOTED_ITEM = re.compile(r'"((?:\\.|[^"\\])*)"')
_OBJECT_BLOCK = re.compile(r"\{([\s\S]*?)\}")


def _strip_fence(value: str) -> str:
    trimmed = value.strip()
    match = _FENCE_ONLY.match(trimmed)
    return match.group(1).strip() if match else trimmed


def _decode_json_like(value: str) -> str:
    normalized = value.replace("\r", "").strip()
    if not normalized:
        return ""
    try:
        decoded = json.loads(f'"{normalized}"')
        if isinstance(decoded, str):
            return decoded.strip()
    except ValueError:
        pass
    return (
        normalized.replace('\\"', '"')
        .replace("\\n", "\n")
        .replace("\\r", "\r")
        .replace("\\t", "\t")
        .strip()
    )


def extract_string_field(source: str, field: str) -> Optional[str]:
    """Pull a string field out of JSON-like text, tolerating a missing closing quote."""
    if not source:
        return None
    text = _strip_fence(source)
    name = re.escape(field)

    strict = re.search(
        r'"' + name + r'"\s*:\s*"([\s\S]*?)"(?=\s*,\s*"|\s*[,}]|\s*\Z)', text, re.IGNORECASE
    )
    if strict and strict.group(1):
        decoded = _decode_json_like(strict.group(1))
        return decoded or None

    tolerant = re.search(
        r'"' + name + r'"\s*:\s*"([\s\S]*?)(?=\n\s*"\w+"\s*:|\s*\Z)', text, re.IGNORECASE
    )
    if not tolerant or not tolerant.group(1):
        return None
    decoded = re.sub(r'",\s*$', "", _decode_json_like(tolerant.group(1))).strip()
    return decoded or None


def extract_string_array_field(source: str, field: str) -> List[str]:
    if not source:
        return []
    text = _strip_fence(source)
    match = re.search(r'"' + re.escape(field) + r'"\s*:\s*\[([\s\S]*?)\]', text, re.IGNORECASE)
    if not match or not match.group(1):
        return []

    items = []
    for item in _QUOTED_ITEM.finditer(match.group(1)):
        decoded = _decode_json_like(item.group(1))
        if decoded:
            items.append(decoded)
    return items


def _non_empty(value: Any, fallback: str) -> str:
    if not isinstance(value, str):
        return fallback
    stripped = value.strip()
    return stripped or fallback


def _string_array(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and len(value) == 0)


class ObjectArraySpec:
    """Array of objects whose string fields are all required.

    ``enums`` maps a field to (allowed values, default used when the value is
    missing or outside the allowed set); enum fields are not required.
    """

    def __init__(self, name: str, fields: List[str], enums: Optional[Dict[str, Tuple[Tuple[str, ...], str]]] = None):
        self.name = name
        self.fields = fields
        self.enums = enums or {}

    def normalize_item(self, item: Any, read) -> Optional[Dict[str, str]]:
        result = {}
        for field in self.fields:
            if field in self.enums:
                allowed, default = self.enums[field]
                raw = read(item, field)
                value = raw.strip().lower() if isinstance(raw, str) else ""
                result[field] = value if value in allowed else default
            else:
                value = _non_empty(read(item, field), "")
                if not value:
                    return None
                result[field] = value
        return result

    def normalize(self, value: Any) -> List[Dict[str, str]]:
        if not isinstance(value, list):
            return []
        items = (self.normalize_item(item, lambda obj, f: obj.get(f)) for item in value if isinstance(item, dict))
        return [item for item in items if item is not None]

    def extract(self, source: str) -> List[Dict[str, str]]:
        if not source:
            return []
        text = _strip_fence(source)
        match = re.search(
            r'"' + re.escape(self.name) + r'"\s*:\s*\[([\s\S]*?)\](?=\s*,\s*"|\s*\})', text, re.IGNORECASE
        )
        if not match or not match.group(1):
            return []

        results = []
        for block in _OBJECT_BLOCK.finditer(match.group(1)):
            body = "{" + block.group(1) + "}"
            item = self.normalize_item(body, extract_string_field)
            if item is not None:
                results.append(item)
        return results


class RepairStrategy:
    """Identity strategy: the parsed payload is validated as-is."""

    def repair(self, raw_text: str, payload: Any) -> Any:
        return payload


class FieldRepairStrategy(RepairStrategy):
    """Rebuilds a vertical payload field by field from the parse and its nested JSON."""

    def __init__(
        self,
        summary_field: str,
        expected_keys: List[str],
        nested_first_strings: Optional[Dict[str, str]] = None,
        default_strings: Optional[Dict[str, str]] = None,
        string_arrays: Optional[List[str]] = None,
        object_arrays: Optional[List[ObjectArraySpec]] = None,
        constants: Optional[Dict[str, Any]] = None,
    ):
        self.summary_field = summary_field
        self.expected_keys = expected_keys
        self.nested_first_strings = nested_first_strings or {}
        self.default_strings = default_strings or {}
        self.string_arrays = string_arrays or []
        self.object_arrays = object_arrays or []
        self.constants = constants or {}
        json_keys = [summary_field, *self.nested_first_strings]
        self._json_like = re.compile("|".join(r'"\s*' + re.escape(k) + r'\s*"\s*:' for k in json_keys))

    def _known_record(self, value: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(value, str) or not value.strip():
            return None
        parsed = extract_json_payload(value)
        if not isinstance(parsed, dict):
            return None
        if not any(key in parsed for key in self.expected_keys):
            return None
        return parsed

    def looks_json_like(self, text: str) -> bool:
        return text.lstrip().startswith("```") or self._json_like.search(text) is not None

    def repair(self, raw_text: str, payload: Any) -> Dict[str, Any]:
        obj = payload if isinstance(payload, dict) else {}
        fallback_summary = _non_empty(raw_text, DEFAULT_SUMMARY_FALLBACK)
        summary_text = obj.get(self.summary_field) if isinstance(obj.get(self.summary_field), str) else ""
        looks_json = self.looks_json_like(summary_text)

        merged = dict(obj)
        for source in (obj.get("answer"), obj.get(self.summary_field)):
            nested = self._known_record(source)
            if nested is None:
                continue
            for key, value in nested.items():
                if _is_empty(merged.get(key)):
                    merged[key] = value

        result: Dict[str, Any] = {}

        nested_summary = extract_string_field(summary_text, self.summary_field)
        summary_candidate = nested_summary or ("" if looks_json else merged.get(self.summary_field))
        summary_fallback = fallback_summary if looks_json or not summary_text.strip() else summary_text
        result[self.summary_field] = _non_empty(summary_candidate, summary_fallback)

        for field, default in self.nested_first_strings.items():
            nested = extract_string_field(summary_text, field)
            result[field] = _non_empty(nested or merged.get(field), default)

        for spec in self.object_arrays:
            result[spec.name] = spec.normalize(merged.get(spec.name)) or spec.extract(summary_text)

        for field in self.string_arrays:
            result[field] = _string_array(merged.get(field)) or extract_string_array_field(summary_text, field)

        for field, default in self.default_strings.items():
            nested = extract_string_field(summary_text, field)
            result[field] = _non_empty(merged.get(field), nested or default)

        result.update(self.constants)
        return result


IDENTITY = RepairStrategy()

REPAIR_STRATEGIES: Dict[str, RepairStrategy] = {
    "legal_contract_analysis": FieldRepairStrategy(
        summary_field="summary",
        expected_keys=["summary", "key_risks", "obligations", "recommendations", "disclaimer"],
        object_arrays=[
            ObjectArraySpec(
                "key_risks",
                ["clause", "risk_level", "explanation"],
                enums={"risk_level": (("low", "medium", "high"), "medium")},
            ),
        ],
        string_arrays=["obligations", "recommendations"],
        default_strings={"disclaimer": "This is an AI analysis and not legal advice."},
    ),
    "medical_research_summary": FieldRepairStrategy(
        summary_field="evidence_summary",
        expected_keys=["research_question", "evidence_summary", "key_findings", "limitations", "safety_notes"],
        nested_first_strings={"research_question": "Research question not specified."},
        string_arrays=["key_findings", "limitations", "safety_notes"],
        constants={"not_medical_advice": True},
    ),
    "financial_report_analysis": FieldRepairStrategy(
        summary_field="executive_summary",
        expected_keys=["executive_summary", "key_metrics", "risk_flags", "recommendations", "disclaimer"],
        object_arrays=[ObjectArraySpec("key_metrics", ["metric", "value", "interpretation"])],
        string_arrays=["risk_flags", "recommendations"],
        default_strings={"disclaimer": "This analysis is informational and not investment advice."},
    ),
}


def get_repair_strategy(vertical_id: str) -> RepairStrategy:
    return REPAIR_STRATEGIES.get(vertical_id, IDENTITY)


def repair(raw_text: str, vertical, payload: Any = None) -> Any:
    """Turn raw model text into the best candidate object for ``vertical``'s schema."""
    if payload is None:
        payload = extract_json_payload(raw_text)
    return get_repair_strategy(vertical.id).repair(raw_text, payload)
