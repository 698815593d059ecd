"""Ollama adapter for locally hosted models."""

from typing import Optional

import httpx

from .base import (
    EmbedParams,
    EmbedResult,
    GenerateTextParams,
    GenerateTextResult,
    LLMProvider,
    parse_usage,
)
from .http import request_json


class OllamaProvider(LLMProvider):
    """Talks to ``/api/chat`` and ``/api/embed``. No API key is required."""

    name = "ollama"

    def __init__(
        self,
        base_url: str,
        timeout_ms: int = 25000,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not base_url or not base_url.strip():
            raise ValueError("OllamaProvider requires a non-empty base_url")
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.client = client or httpx.AsyncClient()

    async def generate_text(self, params: GenerateTextParams) -> GenerateTextResult:
        options = {}
        if params.temperature is not None:
            options["temperature"] = params.temperature
        if params.max_tokens is not None:
            options["num_predict"] = params.max_tokens

        payload = await request_json(
            self.client,
            provider=self.name,
            model=params.model,
            url=f"{self.base_url}/api/chat",
            body={
                "model": params.model,
                "messages": [{"role": m.role, "content": m.content} for m in params.messages],
                "stream": False,
                "options": options or None,
            },
            timeout_seconds=self._timeout_seconds(params.timeout_ms, self.timeout_ms),
        )

        if not isinstance(payload, dict):
            return GenerateTextResult(text="")
        message = payload.get("message") or {}
        text = message.get("content") if isinstance(message.get("content"), str) else ""
        return GenerateTextResult(text=text, usage=parse_usage(payload))

    async def embed(self, params: EmbedParams) -> EmbedResult:
        payload = await request_json(
            self.client,
            provider=self.name,
            model=params.model,
            url=f"{self.base_url}/api/embed",
            body={"model": params.model, "input": params.inputs},
            timeout_seconds=self._timeout_seconds(params.timeout_ms, self.timeout_ms),
        )

        if not isinstance(payload, dict) or not isinstance(payload.get("embeddings"), list):
            raise ValueError("ollama embeddings response missing embeddings array")
        vectors = []
        for index, values in enumerate(payload["embeddings"]):
            if not isinstance(values, list) or not all(
                isinstance(v, (int, float)) and not isinstance(v, bool) for v in values
            ):
                raise ValueError(f"ollama embeddings response item {index} has non-numeric value")
            vectors.append([float(v) for v in values])
        return EmbedResult(vectors=vectors)
