"""OpenAI adapter built on the official async SDK."""

import logging
from typing import Optional

from openai import AsyncOpenAI, APIConnectionError, APIStatusError, APITimeoutError, OpenAIError

from ..utils.errors import ProviderRequestError
from .base import (
    EmbedParams,
    EmbedResult,
    GenerateTextParams,
    GenerateTextResult,
    LLMProvider,
    is_retryable_status,
    parse_usage,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout_ms: int = 25000,
        client: Optional[AsyncOpenAI] = None,
    ):
        if not api_key or not api_key.strip():
            raise ValueError("OpenAIProvider requires a non-empty api_key")
        self.timeout_ms = timeout_ms
        # Retries are handled by the fallback chain and the job queue
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    def _normalize_error(self, error: Exception, model: str, timeout_seconds: float) -> ProviderRequestError:
        if isinstance(error, APITimeoutError):
            return ProviderRequestError(
                f"openai request timed out after {int(timeout_seconds * 1000)}ms",
                provider=self.name,
                model=model,
                status=None,
                retryable=True,
                code="TIMEOUT",
            )
        if isinstance(error, APIConnectionError):
            return ProviderRequestError(
                "openai request failed before response",
                provider=self.name,
                model=model,
                status=None,
                retryable=True,
                code="NETWORK_ERROR",
            )
        if isinstance(error, APIStatusError):
            return ProviderRequestError(
                error.message or f"openai request failed with status {error.status_code}",
                provider=self.name,
                model=model,
                status=error.status_code,
                retryable=is_retryable_status(error.status_code),
                code=getattr(error, "code", None),
            )
        return ProviderRequestError(
            str(error) or "openai request failed",
            provider=self.name,
            model=model,
            status=None,
            retryable=False,
        )

    async def generate_text(self, params: GenerateTextParams) -> GenerateTextResult:
        timeout = self._timeout_seconds(params.timeout_ms, self.timeout_ms)
        request = {
            "model": params.model,
            "messages": [{"role": m.role, "content": m.content} for m in params.messages],
            "timeout": timeout,
        }
        if params.temperature is not None:
            request["temperature"] = params.temperature
        if params.max_tokens is not None:
            request["max_tokens"] = params.max_tokens

        try:
            response = await self.client.chat.completions.create(**request)
        except OpenAIError as e:
            raise self._normalize_error(e, params.model, timeout) from e

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""

        usage = parse_usage(response.usage.model_dump()) if response.usage is not None else None
        return GenerateTextResult(text=text, usage=usage)

    async def embed(self, params: EmbedParams) -> EmbedResult:
        timeout = self._timeout_seconds(params.timeout_ms, self.timeout_ms)
        try:
            response = await self.client.embeddings.create(
                model=params.model,
                input=params.inputs,
                timeout=timeout,
            )
        except OpenAIError as e:
            raise self._normalize_error(e, params.model, timeout) from e

        ordered = sorted(response.data, key=lambda item: item.index)
        return EmbedResult(vectors=[list(item.embedding) for item in ordered])
