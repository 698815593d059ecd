"""Compile-time vertical registry with a generic fallback."""

import logging
import re
from functools import lru_cache

from .financial import financial_report_analysis
from .generic import generic_analysis
from .legal import legal_contract_analysis
from .medical import medical_research_summary
from .types import VerticalConfig

logger = logging.getLogger(__name__)

VERTICALS = {
    v.id: v
    for v in (
        legal_contract_analysis,
        medical_research_summary,
        financial_report_analysis,
        generic_analysis,
    )
}

SEEDED_VERTICALS = [
    "legal_contract_analysis",
    "medical_research_summary",
    "financial_report_analysis",
]


def normalize_use_case(use_case: str) -> str:
    normalized = use_case.strip().lower()
    normalized = re.sub(r"\s+", "_", normalized)
    normalized = re.sub(r"[^a-z0-9_]", "_", normalized)
    normalized = re.sub(r"_+", "_", normalized)
    return normalized.strip("_")


def fallback_vertical(vertical_id: str) -> VerticalConfig:
    if not vertical_id:
        return generic_analysis
    return generic_analysis.renamed(
        id=vertical_id,
        name=f"Generic Analysis ({vertical_id.replace('_', ' ')})",
    )


@lru_cache(maxsize=None)
def _resolve(vertical_id: str) -> VerticalConfig:
    vertical = VERTICALS.get(vertical_id)
    if vertical is not None:
        return vertical
    logger.info(f"[verticals] Unknown use case '{vertical_id}', using generic fallback")
    return fallback_vertical(vertical_id)


def get_vertical(use_case: str) -> VerticalConfig:
    """Resolve a use case to its vertical, memoized per normalized id."""
    return _resolve(normalize_use_case(use_case or "") or generic_analysis.id)
