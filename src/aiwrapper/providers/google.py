"""Gemini (Generative Language API) adapter."""

from typing import Optional
from urllib.parse import quote

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


class GoogleProvider(LLMProvider):
    name = "google"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_ms: int = 25000,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key or not api_key.strip():
            raise ValueError("GoogleProvider requires a non-empty api_key")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.client = client or httpx.AsyncClient()

    def _url(self, model: str, action: str) -> str:
        return f"{self.base_url}/models/{quote(model, safe='')}:{action}?key={self.api_key}"

    async def generate_text(self, params: GenerateTextParams) -> GenerateTextResult:
        system, conversation = split_system_messages(params.messages)
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in conversation
        ] or [{"role": "user", "parts": [{"text": ""}]}]

        payload = await request_json(
            self.client,
            provider=self.name,
            model=params.model,
            url=self._url(params.model, "generateContent"),
            body={
                "systemInstruction": {"parts": [{"text": system}]} if system else None,
                "contents": contents,
                "generationConfig": {
                    k: v
                    for k, v in (("temperature", params.temperature), ("maxOutputTokens", params.max_tokens))
                    if v is not None
                },
            },
            timeout_seconds=self._timeout_seconds(params.timeout_ms, self.timeout_ms),
        )

        text = ""
        usage = None
        if isinstance(payload, dict):
            candidates = payload.get("candidates") or []
            if candidates and isinstance(candidates[0], dict):
                parts = (candidates[0].get("content") or {}).get("parts") or []
                text = "\n".join(
                    p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
                )
            usage = parse_usage(payload.get("usageMetadata"))
        return GenerateTextResult(text=text, usage=usage)

    async def embed(self, params: EmbedParams) -> EmbedResult:
        model_path = f"models/{params.model}"
        payload = await request_json(
            self.client,
            provider=self.name,
            model=params.model,
            url=self._url(params.model, "batchEmbedContents"),
            body={
                "requests": [
                    {"model": model_path, "content": {"parts": [{"text": text}]}}
                    for text in params.inputs
                ]
            },
            timeout_seconds=self._timeout_seconds(params.timeout_ms, self.timeout_ms),
        )

        if not isinstance(payload, dict) or not isinstance(payload.get("embeddings"), list):
            raise ValueError("google embeddings response missing embeddings array")
        return EmbedResult(vectors=check_vector_values(payload["embeddings"], self.name, "values"))
