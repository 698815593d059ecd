"""Three-layer task complexity classifier.

1. Regex layer: complex signals win outright, then basic questions and simple
   signals, then medium signals. Abstains when nothing matches.
2. Optional external classifier callback, consulted only when the regex layer
   abstains. Its failures never propagate.
3. Deterministic word-count / signal-density heuristic of last resort.
"""

import logging
import re
from typing import Awaitable, Callable, Optional

from .tasks import TaskType

logger = logging.getLogger(__name__)

AmbiguousClassifier = Callable[[str], Awaitable[Optional[TaskType]]]

_I = re.IGNORECASE

SIMPLE_PATTERNS = [
    re.compile(p, _I)
    for p in (
        r"\btranslate\b",
        r"\btranslation\b",
        r"\bspell(?:ing)?\s*(?:check|fix)?\b",
        r"\bgrammar\b",
        r"\bproofread\b",
        r"\brephrase\b",
        r"\bparaphrase\b",
        r"\bformat\b",
        r"\bfix punctuation\b",
        r"\bwhat is\b",
        r"\bwho is\b",
        r"\bwhen is\b",
        r"\bwhere is\b",
        r"\bdefine\b",
        r"\bcapital of\b",
    )
]

MEDIUM_PATTERNS = [
    re.compile(p, _I)
    for p in (
        r"\bsummar(?:ize|ise)\b",
        r"\bcompare\b",
        r"\bpros and cons\b",
        r"\boutline\b",
        r"\bdraft\b",
        r"\bemail\b",
        r"\bextract\b",
        r"\bclassify\b",
        r"\bexplain\b",
        r"\brefactor\b",
    )
]

COMPLEX_PATTERNS = [
    re.compile(p, _I)
    for p in (
        r"\barchitecture\b",
        r"\bsystem design\b",
        r"\bdesign\s+(?:a|an|the)\s+(?:[\w-]+\s+)?system\b",
        r"\bthreat model\b",
        r"\bincident response\b",
        r"\bproduction outage\b",
        r"\bcompliance\b",
        r"\broadmap\b",
        r"\bresearch report\b",
        r"\bmulti[-\s]?step\b",
        r"\bend[-\s]?to[-\s]?end\b",
        r"\btrade[-\s]?offs?\b",
        r"\bfinancial model\b",
        r"\blegal\b",
        r"\bmedical\b",
    )
]

HEURISTIC_COMPLEX_SIGNALS = [
    re.compile(p, _I)
    for p in (
        r"\bdesign\b",
        r"\bstrategy\b",
        r"\broadmap\b",
        r"\boptimi[sz]e\b",
        r"\bscal(?:e|ing)\b",
        r"\bsecurity\b",
        r"\bevaluate\b",
        r"\bdeep\b",
        r"\bcomprehensive\b",
        r"\bdetailed\b",
        r"\bmultiple\b",
    )
]

HEURISTIC_MEDIUM_SIGNALS = [
    re.compile(p, _I)
    for p in (
        r"\bsummar(?:ize|ise)\b",
        r"\bexplain\b",
        r"\bdraft\b",
        r"\bemail\b",
        r"\bcompare\b",
        r"\btable\b",
        r"\bbullet\b",
        r"\bplan\b",
    )
]

BASIC_QUESTION_START = re.compile(r"^(what|who|when|where|which|define)\b", _I)
# Unanchored alternation: "plan" also matches inside longer words
BASIC_QUESTION_EXCLUSIONS = re.compile(r"\bcompare|trade[-\s]?off|architecture|plan|strategy\b", _I)

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text.strip()).lower()


def word_count(text: str) -> int:
    return len(text.split())


def classify_by_regex(text: str) -> Optional[TaskType]:
    normalized = normalize_text(text)
    if not normalized:
        return TaskType.SIMPLE

    if any(p.search(normalized) for p in COMPLEX_PATTERNS):
        return TaskType.COMPLEX

    looks_basic_question = (
        BASIC_QUESTION_START.search(normalized) is not None
        and word_count(normalized) <= 14
        and BASIC_QUESTION_EXCLUSIONS.search(normalized) is None
    )
    if looks_basic_question or any(p.search(normalized) for p in SIMPLE_PATTERNS):
        return TaskType.SIMPLE

    if any(p.search(normalized) for p in MEDIUM_PATTERNS):
        return TaskType.MEDIUM

    return None


def heuristic_classify(text: str) -> TaskType:
    normalized = normalize_text(text)
    if not normalized:
        return TaskType.SIMPLE

    words = word_count(normalized)
    complex_signals = sum(1 for p in HEURISTIC_COMPLEX_SIGNALS if p.search(normalized))
    medium_signals = sum(1 for p in HEURISTIC_MEDIUM_SIGNALS if p.search(normalized))

    if words > 45 or complex_signals >= 2:
        return TaskType.COMPLEX
    if words <= 12 and medium_signals == 0:
        return TaskType.SIMPLE
    if medium_signals >= 1 or words <= 35:
        return TaskType.MEDIUM
    return TaskType.COMPLEX


async def classify_task(
    text: str,
    classify_ambiguous: Optional[AmbiguousClassifier] = None,
) -> TaskType:
    """Classify free text into SIMPLE, MEDIUM or COMPLEX.

    Args:
        text: User input
        classify_ambiguous: Optional async callback consulted only when the
            regex layer abstains; receives the normalized text

    Returns:
        TaskType (never LOCAL unless the callback returns it)
    """
    layer_one = classify_by_regex(text)
    if layer_one is not None:
        return layer_one

    if classify_ambiguous is not None:
        try:
            layer_two = TaskType.parse(await classify_ambiguous(normalize_text(text)))
            if layer_two is not None:
                return layer_two
        except Exception as e:
            logger.warning(f"[classifier] External classifier failed, using heuristic: {e}")

    return heuristic_classify(text)
