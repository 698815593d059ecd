"""Vector math and pgvector literal helpers."""

import math
from typing import Any, List, Sequence


def _dot(a: Sequence[float], b: Sequence[float]) -> float:
    return sum(x * (b[i] if i < len(b) else 0.0) for i, x in enumerate(a))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    denom = math.sqrt(_dot(a, a)) * math.sqrt(_dot(b, b))
    if denom == 0:
        return 0.0
    return _dot(a, b) / denom


def to_vector_literal(vector: Sequence[float]) -> str:
    return "[" + ",".join(f"{float(v):.8f}" for v in vector) + "]"


def _finite(value: Any, fallback: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def parse_vector_literal(raw: Any) -> List[float]:
    if isinstance(raw, (list, tuple)):
        return [_finite(v) for v in raw]
    if not isinstance(raw, str):
        return []

    normalized = raw.strip()
    if normalized.startswith("[") and normalized.endswith("]"):
        normalized = normalized[1:-1]
    if not normalized.strip():
        return []
    return [_finite(v.strip()) for v in normalized.split(",")]
