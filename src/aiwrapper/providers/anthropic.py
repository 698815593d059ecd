"""Anthropic Messages API adapter."""

from typing import Optional

import httpx

from .base import (
    EmbedParams,
    EmbedResult,
    GenerateTextParams,
    GenerateTextResult,
    LLMProvider,
    check_vector_values,
    parse_usage,
    split_system_messages,
)
from .http import request_json


class AnthropicProvider(LLMProvider):
    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.anthropic.com/v1",
        version: str = "2023-06-01",
        timeout_ms: int = 25000,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key or not api_key.strip():
            raise ValueError("AnthropicProvider requires a non-empty api_key")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.version = version
        self.timeout_ms = timeout_ms
        self.client = client or httpx.AsyncClient()

    def _headers(self):
        return {"x-api-key": self.api_key, "anthropic-version": self.version}

    async def generate_text(self, params: GenerateTextParams) -> GenerateTextResult:
        system, conversation = split_system_messages(params.messages)
        messages = [
            {"role": "assistant" if m.role == "assistant" else "user", "content": m.content}
            for m in conversation
        ] or [{"role": "user", "content": ""}]

        payload = await request_json(
            self.client,
            provider=self.name,
            model=params.model,
            url=f"{self.base_url}/messages",
            headers=self._headers(),
            body={
                "model": params.model,
                "max_tokens": params.max_tokens or 512,
                "temperature": params.temperature,
                "system": system,
                "messages": messages,
            },
            timeout_seconds=self._timeout_seconds(params.timeout_ms, self.timeout_ms),
        )

        text = ""
        usage = None
        if isinstance(payload, dict):
            blocks = payload.get("content") or []
            text = "\n".join(
                b["text"] for b in blocks
                if isinstance(b, dict) and b.get("type") == "text" and isinstance(b.get("text"), str)
            )
            usage = parse_usage(payload.get("usage"))
        return GenerateTextResult(text=text, usage=usage)

    async def embed(self, params: EmbedParams) -> EmbedResult:
        payload = await request_json(
            self.client,
            provider=self.name,
            model=params.model,
            url=f"{self.base_url}/embeddings",
            headers=self._headers(),
            body={"model": params.model, "input": params.inputs},
            timeout_seconds=self._timeout_seconds(params.timeout_ms, self.timeout_ms),
        )

        if not isinstance(payload, dict):
            raise ValueError("anthropic embeddings response is not an object")
        if isinstance(payload.get("data"), list):
            return EmbedResult(vectors=check_vector_values(payload["data"], self.name, "embedding"))
        if isinstance(payload.get("embeddings"), list):
            return EmbedResult(vectors=check_vector_values(payload["embeddings"], self.name, "values"))
        raise ValueError("anthropic embeddings response missing supported arrays")
