from .base import (
    ChatMessage,
    ProviderUsage,
    GenerateTextParams,
    GenerateTextResult,
    EmbedParams,
    EmbedResult,
    LLMProvider,
    is_retryable_status,
)
from .registry import ProviderRegistry, PROVIDER_FALLBACK_ORDER, EMBED_MODEL_BY_PROVIDER
from .fallback import (
    FallbackResult,
    EmbedRuntime,
    execute_with_fallback,
    build_generation_order,
    select_embed_runtime,
    unique_providers,
    GENERATE_TEXT,
    EMBED,
)

__all__ = [
    "ChatMessage",
    "ProviderUsage",
    "GenerateTextParams",
    "GenerateTextResult",
    "EmbedParams",
    "EmbedResult",
    "LLMProvider",
    "is_retryable_status",
    "ProviderRegistry",
    "PROVIDER_FALLBACK_ORDER",
    "EMBED_MODEL_BY_PROVIDER",
    "FallbackResult",
    "EmbedRuntime",
    "execute_with_fallback",
    "build_generation_order",
    "select_embed_runtime",
    "unique_providers",
    "GENERATE_TEXT",
    "EMBED",
]
