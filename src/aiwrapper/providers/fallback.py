"""Ordered multi-provider execution with fallback."""

import logging
from typing import Any, Callable, Iterable, List, Optional

from pydantic import BaseModel

from ..routing.routes import route_model
from ..routing.tasks import TaskType
from ..utils.errors import NoProviderAvailable, ProviderRequestError
from .base import LLMProvider
from .registry import PROVIDER_FALLBACK_ORDER, ProviderRegistry

logger = logging.getLogger(__name__)

GENERATE_TEXT = "generate_text"
EMBED = "embed"


class FallbackResult:
    """Outcome of the first provider that succeeded."""

    def __init__(self, provider: str, model: str, result: Any):
        self.provider = provider
        self.model = model
        self.result = result

    def __iter__(self):
        return iter((self.provider, self.model, self.result))


class EmbedRuntime:
    def __init__(self, provider_name: str, provider: LLMProvider, model: str):
        self.provider_name = provider_name
        self.provider = provider
        self.model = model


def unique_providers(values: Iterable[str]) -> List[str]:
    """De-duplicate while preserving first occurrence."""
    return list(dict.fromkeys(values))


def build_generation_order(task_type: TaskType, preferred: Optional[List[str]] = None) -> List[str]:
    routed = route_model(task_type).provider
    return unique_providers([*(preferred or []), routed, *PROVIDER_FALLBACK_ORDER])


def select_embed_runtime(registry: ProviderRegistry, preferred: Optional[List[str]] = None) -> Optional[EmbedRuntime]:
    for name in unique_providers([*(preferred or []), *PROVIDER_FALLBACK_ORDER]):
        provider = registry.get(name)
        if provider is None:
            continue
        return EmbedRuntime(name, provider, registry.embed_model_for(name))
    return None


async def execute_with_fallback(
    action: str,
    params_factory: Callable[[str], BaseModel],
    registry: ProviderRegistry,
    order: List[str],
) -> FallbackResult:
    """Run an action against each configured provider in order.

    Args:
        action: ``"generate_text"`` or ``"embed"``
        params_factory: Builds the request for a provider name (model varies per provider)
        registry: Configured adapters
        order: Provider names to try, first success wins

    Returns:
        FallbackResult(provider, model, result)

    Raises:
        NoProviderAvailable: No provider in ``order`` is configured
        Exception: The last provider error when every configured provider failed
    """
    if action not in (GENERATE_TEXT, EMBED):
        raise ValueError(f"Unsupported provider action: {action}")

    last_error: Optional[Exception] = None

    for name in order:
        provider = registry.get(name)
        if provider is None:
            continue

        params = params_factory(name)
        try:
            if action == GENERATE_TEXT:
                result = await provider.generate_text(params)
            else:
                result = await provider.embed(params)
            return FallbackResult(name, params.model, result)
        except Exception as e:
            last_error = e
            status = e.status if isinstance(e, ProviderRequestError) else None
            logger.error(
                f"[providers] {action} failed on {name}: {e}",
                extra={"provider": name, "model": params.model, "status": status, "error": str(e)},
            )

    if last_error is not None:
        raise last_error

    raise NoProviderAvailable("No configured provider available for generation")
