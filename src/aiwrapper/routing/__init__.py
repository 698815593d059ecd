from .tasks import TaskType
from .classifier import classify_task, classify_by_regex, heuristic_classify, normalize_text
from .routes import (
    ModelRoute,
    PriceTable,
    ROUTE_BY_TASK,
    PRICE_TABLE_BY_PROVIDER,
    BASE_SYSTEM_PROMPT,
    route_model,
    estimate_cost,
    resolve_usage_tokens,
    approximate_tokens,
)

__all__ = [
    "TaskType",
    "classify_task",
    "classify_by_regex",
    "heuristic_classify",
    "normalize_text",
    "ModelRoute",
    "PriceTable",
    "ROUTE_BY_TASK",
    "PRICE_TABLE_BY_PROVIDER",
    "BASE_SYSTEM_PROMPT",
    "route_model",
    "estimate_cost",
    "resolve_usage_tokens",
    "approximate_tokens",
]
