"""Model-backed classifier used when the regex layer abstains."""

import hashlib
import logging
import re
from typing import Optional

from ..cache import Cache
from ..providers.base import ChatMessage, GenerateTextParams
from ..providers.registry import ProviderRegistry
from ..utils.deadline import Deadline
from .tasks import TaskType

logger = logging.getLogger(__name__)

CLASSIFIER_PROMPT = "Classify user request complexity. Output only one token: SIMPLE, MEDIUM, or COMPLEX."
CLASSIFIER_ORDER = ["openai", "google", "anthropic"]

_TIER = re.compile(r"\b(SIMPLE|MEDIUM|COMPLEX)\b")


def parse_task_type(raw: str) -> Optional[TaskType]:
    match = _TIER.search((raw or "").upper())
    return TaskType(match.group(1)) if match else None


class LlmTaskClassifier:
    """Async callable asking the cheapest tier of each provider for a single token.

    Answers are memoized per normalized text in the injected cache.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: Optional[Cache] = None,
        ttl_seconds: int = 3600,
        timeout_ms: Optional[int] = None,
    ):
        self.registry = registry
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.timeout_ms = timeout_ms

    @staticmethod
    def cache_key(text: str) -> str:
        return "classify:" + hashlib.sha256(text.encode("utf-8")).hexdigest()

    async def __call__(self, text: str, deadline: Optional[Deadline] = None) -> Optional[TaskType]:
        """Classify ``text``; each provider call is bounded by ``deadline`` when given."""
        key = self.cache_key(text)
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached:
                return TaskType.parse(cached)

        for name in CLASSIFIER_ORDER:
            provider = self.registry.get(name)
            if provider is None:
                continue

            model = self.registry.model_for(TaskType.SIMPLE, name)
            timeout_ms = deadline.remaining_ms(cap=self.timeout_ms) if deadline is not None else self.timeout_ms
            try:
                result = await provider.generate_text(GenerateTextParams(
                    model=model,
                    max_tokens=16,
                    temperature=0,
                    timeout_ms=timeout_ms,
                    messages=[
                        ChatMessage(role="system", content=CLASSIFIER_PROMPT),
                        ChatMessage(role="user", content=text),
                    ],
                ))
            except Exception as e:
                logger.warning(
                    f"[classifier] {name} classification failed: {e}",
                    extra={"provider": name, "model": model},
                )
                continue

            parsed = parse_task_type(result.text)
            if parsed is not None:
                if self.cache is not None:
                    await self.cache.set(key, parsed.value, self.ttl_seconds)
                return parsed

        return None
