"""Static routing and pricing tables."""

import math
from typing import Optional

from pydantic import BaseModel

from .tasks import TaskType


class ModelRoute(BaseModel):
    provider: str
    model: str
    max_tokens: int
    cacheable: bool

    class Config:
        frozen = True


class PriceTable(BaseModel):
    input_per_million: float
    output_per_million: float


ROUTE_BY_TASK = {
    TaskType.SIMPLE: ModelRoute(provider="openai", model="gpt-4o-mini", max_tokens=400, cacheable=True),
    TaskType.MEDIUM: ModelRoute(provider="anthropic", model="claude-3-5-haiku-latest", max_tokens=900, cacheable=False),
    TaskType.COMPLEX: ModelRoute(provider="google", model="gemini-pro-latest", max_tokens=1800, cacheable=False),
    TaskType.LOCAL: ModelRoute(provider="ollama", model="qwen2.5:3b", max_tokens=2000, cacheable=False),
}

PRICE_TABLE_BY_PROVIDER = {
    "openai": PriceTable(input_per_million=0.15, output_per_million=0.6),
    "anthropic": PriceTable(input_per_million=0.25, output_per_million=1.25),
    "google": PriceTable(input_per_million=0.1, output_per_million=0.3),
    "ollama": PriceTable(input_per_million=0, output_per_million=0),
}

BASE_SYSTEM_PROMPT = " ".join([
    "You are AI Wrapper assistant.",
    "Be concise, factual, and safe.",
    "Do not provide harmful instructions.",
])


def route_model(task_type: TaskType) -> ModelRoute:
    return ROUTE_BY_TASK[TaskType(task_type)]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def approximate_tokens(text: str) -> int:
    return max(1, math.ceil(len(text) / 4))


def estimate_cost(usage, price_table: PriceTable) -> float:
    """Estimate USD cost for a usage record.

    When only a total is reported, the missing side is derived from a 70/30
    input/output split of that total.
    """
    input_tokens = usage.input_tokens or 0
    output_tokens = usage.output_tokens or 0
    total = usage.total_tokens or 0

    if (input_tokens == 0 or output_tokens == 0) and total > 0:
        weighted_input = _round_half_up(total * 0.7)
        input_tokens = input_tokens or weighted_input
        output_tokens = output_tokens or max(total - weighted_input, 0)

    cost = (input_tokens / 1_000_000) * price_table.input_per_million
    cost += (output_tokens / 1_000_000) * price_table.output_per_million
    return round(cost, 6)


def resolve_usage_tokens(usage: Optional[object], request_text: str, response_text: str) -> tuple:
    """Return (input_tokens, output_tokens), approximating whatever the provider omitted."""
    input_tokens = getattr(usage, "input_tokens", None)
    output_tokens = getattr(usage, "output_tokens", None)
    total = getattr(usage, "total_tokens", None)

    if not input_tokens and not output_tokens and total:
        weighted_input = _round_half_up(total * 0.7)
        return weighted_input, max(total - weighted_input, 0)

    if input_tokens is None:
        input_tokens = approximate_tokens(request_text)
    if output_tokens is None:
        output_tokens = approximate_tokens(response_text)
    return input_tokens, output_tokens
