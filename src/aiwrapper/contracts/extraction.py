"""Best-effort extraction of a JSON payload from raw model text."""

import json
import re
from typing import Any, List, Optional

_FENCED = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)

_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t", "\b": "\\b", "\f": "\\f"}


def repair_control_characters(candidate: str) -> str:
    """Escape raw control characters, but only inside quoted string literals."""
    out = []
    in_string = False
    escaped = False

    for ch in candidate:
        if in_string:
            if escaped:
                escaped = False
                out.append(ch)
            elif ch == "\\":
                escaped = True
                out.append(ch)
            elif ch == '"':
                in_string = False
                out.append(ch)
            elif ord(ch) < 0x20:
                out.append(_ESCAPES.get(ch, f"\\u{ord(ch):04x}"))
            else:
                out.append(ch)
        else:
            if ch == '"':
                in_string = True
            out.append(ch)

    return "".join(out)


_MISSING = object()


def _parse_candidate(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except ValueError:
        pass

    repaired = repair_control_characters(candidate)
    if repaired == candidate:
        return _MISSING
    try:
        return json.loads(repaired)
    except ValueError:
        return _MISSING


def json_candidates(text: str) -> List[str]:
    """Fenced block content, the trimmed text, then the outermost brace span."""
    candidates = []
    fenced = _FENCED.search(text)
    if fenced and fenced.group(1):
        candidates.append(fenced.group(1))
    candidates.append(text)

    first = text.find("{")
    last = text.rfind("}")
    if first >= 0 and last > first:
        candidates.append(text[first:last + 1])
    return candidates


def try_extract_json(raw: str) -> Optional[Any]:
    """Return the first candidate that parses, or None."""
    trimmed = (raw or "").strip()
    if not trimmed:
        return None
    for candidate in json_candidates(trimmed):
        parsed = _parse_candidate(candidate)
        if parsed is not _MISSING:
            return parsed
    return None


def extract_json_payload(raw: str) -> Any:
    """
    Parse model output into a JSON value.

    Falls back to ``{"answer": <trimmed text>, "key_points": []}`` when no
    candidate parses, so plain-prose answers still reach validation.
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        return {"answer": "", "key_points": []}

    parsed = try_extract_json(trimmed)
    if parsed is None:
        return {"answer": trimmed, "key_points": []}
    return parsed
