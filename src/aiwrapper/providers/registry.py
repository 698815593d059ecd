"""Process-wide provider registry built once at worker startup."""

import logging
from typing import Dict, List, Optional

from ..routing.routes import PRICE_TABLE_BY_PROVIDER, PriceTable
from ..routing.tasks import TaskType
from .base import LLMProvider

logger = logging.getLogger(__name__)

PROVIDER_FALLBACK_ORDER = ["openai", "anthropic", "google", "ollama"]

DEFAULT_OLLAMA_MODEL = "qwen2.5:3b"


def default_model_table(ollama_model: str = DEFAULT_OLLAMA_MODEL) -> Dict[TaskType, Dict[str, str]]:
    simple = {
        "openai": "gpt-4o-mini",
        "anthropic": "claude-3-5-haiku-latest",
        "google": "gemini-flash-latest",
        "ollama": ollama_model,
    }
    return {
        TaskType.SIMPLE: simple,
        TaskType.MEDIUM: {
            "openai": "gpt-4.1-mini",
            "anthropic": "claude-3-5-haiku-latest",
            "google": "gemini-pro-latest",
            "ollama": ollama_model,
        },
        TaskType.COMPLEX: {
            "openai": "gpt-4.1",
            "anthropic": "claude-3-5-sonnet-latest",
            "google": "gemini-pro-latest",
            "ollama": ollama_model,
        },
        TaskType.LOCAL: dict(simple),
    }


EMBED_MODEL_BY_PROVIDER = {
    "openai": "text-embedding-3-small",
    "anthropic": "claude-embed-v1",
    "google": "gemini-embedding-001",
    "ollama": "nomic-embed-text",
}


class ProviderRegistry:
    """Configured adapters plus the per-task model, embedding and price tables."""

    def __init__(
        self,
        providers: Optional[Dict[str, LLMProvider]] = None,
        models: Optional[Dict[TaskType, Dict[str, str]]] = None,
        embed_models: Optional[Dict[str, str]] = None,
        prices: Optional[Dict[str, PriceTable]] = None,
    ):
        self._providers: Dict[str, LLMProvider] = dict(providers or {})
        self.models = models or default_model_table()
        self.embed_models = embed_models or dict(EMBED_MODEL_BY_PROVIDER)
        self.prices = prices or dict(PRICE_TABLE_BY_PROVIDER)

    @classmethod
    def from_settings(cls, settings) -> "ProviderRegistry":
        """Register every provider whose credentials are present."""
        from .anthropic import AnthropicProvider
        from .google import GoogleProvider
        from .ollama import OllamaProvider
        from .openai import OpenAIProvider

        timeout_ms = settings.PROVIDER_TIMEOUT_MS
        providers: Dict[str, LLMProvider] = {}

        if settings.OPENAI_API_KEY and settings.OPENAI_API_KEY.strip():
            providers["openai"] = OpenAIProvider(api_key=settings.OPENAI_API_KEY.strip(), timeout_ms=timeout_ms)
        if settings.ANTHROPIC_API_KEY and settings.ANTHROPIC_API_KEY.strip():
            providers["anthropic"] = AnthropicProvider(api_key=settings.ANTHROPIC_API_KEY.strip(), timeout_ms=timeout_ms)
        if settings.GOOGLE_API_KEY and settings.GOOGLE_API_KEY.strip():
            providers["google"] = GoogleProvider(api_key=settings.GOOGLE_API_KEY.strip(), timeout_ms=timeout_ms)
        if settings.OLLAMA_BASE_URL and settings.OLLAMA_BASE_URL.strip():
            providers["ollama"] = OllamaProvider(base_url=settings.OLLAMA_BASE_URL.strip(), timeout_ms=timeout_ms)

        logger.info(
            f"[providers] Registry initialized with {len(providers)} provider(s)",
            extra={"providers": sorted(providers)},
        )
        return cls(providers=providers, models=default_model_table(settings.OLLAMA_MODEL))

    def get(self, name: str) -> Optional[LLMProvider]:
        return self._providers.get(name)

    def is_configured(self, name: str) -> bool:
        return name in self._providers

    @property
    def configured(self) -> List[str]:
        return list(self._providers)

    def model_for(self, task_type: TaskType, provider: str) -> str:
        return self.models[TaskType(task_type)][provider]

    def embed_model_for(self, provider: str) -> str:
        return self.embed_models[provider]

    def price_for(self, provider: str) -> PriceTable:
        return self.prices.get(provider, PriceTable(input_per_million=0, output_per_million=0))
