"""Unit tests for provider fallback and adapter request shapes."""

import json

import httpx
import pytest

from aiwrapper.providers import (
    GENERATE_TEXT,
    build_generation_order,
    execute_with_fallback,
    is_retryable_status,
    select_embed_runtime,
)
from aiwrapper.providers.base import ChatMessage, EmbedParams, GenerateTextParams, parse_usage
from aiwrapper.providers.anthropic import AnthropicProvider
from aiwrapper.providers.ollama import OllamaProvider
from aiwrapper.routing import TaskType
from aiwrapper.utils.errors import NoProviderAvailable, ProviderRequestError
from conftest import FakeProvider


def _params(name: str) -> GenerateTextParams:
    return GenerateTextParams(model=f"{name}-model", messages=[ChatMessage(role="user", content="hi")])


def test_generation_order_puts_preferred_first():
    assert build_generation_order(TaskType.MEDIUM, ["ollama"]) == ["ollama", "anthropic", "openai", "google"]
    assert build_generation_order(TaskType.SIMPLE) == ["openai", "anthropic", "google", "ollama"]


@pytest.mark.asyncio
async def test_fallback_skips_unconfigured_and_failed_providers(make_registry):
    failing = FakeProvider("anthropic", error=ProviderRequestError("rate limited", "anthropic", "m", status=429, retryable=True))
    working = FakeProvider("google", responses=["done"])
    registry = make_registry(anthropic=failing, google=working)

    provider, model, result = await execute_with_fallback(
        GENERATE_TEXT, _params, registry, ["openai", "anthropic", "google"]
    )

    assert (provider, model, result.text) == ("google", "google-model", "done")
    assert len(failing.calls) == 1


@pytest.mark.asyncio
async def test_fallback_reraises_last_error(make_registry):
    registry = make_registry(
        openai=FakeProvider("openai", error=RuntimeError("first")),
        google=FakeProvider("google", error=RuntimeError("last")),
    )
    with pytest.raises(RuntimeError, match="last"):
        await execute_with_fallback(GENERATE_TEXT, _params, registry, ["openai", "google"])


@pytest.mark.asyncio
async def test_fallback_without_configured_provider(make_registry):
    with pytest.raises(NoProviderAvailable):
        await execute_with_fallback(GENERATE_TEXT, _params, make_registry(), ["openai"])


@pytest.mark.asyncio
async def test_fallback_rejects_unknown_action(make_registry):
    with pytest.raises(ValueError):
        await execute_with_fallback("stream", _params, make_registry(), ["openai"])


def test_select_embed_runtime(make_registry):
    registry = make_registry(google=FakeProvider("google"))
    runtime = select_embed_runtime(registry, ["openai"])

    assert runtime.provider_name == "google"
    assert runtime.model == "gemini-embedding-001"
    assert select_embed_runtime(make_registry()) is None


@pytest.mark.parametrize("status,retryable", [
    (None, True), (408, True), (429, True), (500, True), (503, True), (400, False), (401, False), (404, False),
])
def test_retryable_statuses(status, retryable):
    assert is_retryable_status(status) is retryable


def test_parse_usage_accepts_vendor_shapes():
    assert parse_usage({"prompt_tokens": 3, "completion_tokens": 4}).output_tokens == 4
    assert parse_usage({"promptTokenCount": 5, "totalTokenCount": 9}).total_tokens == 9
    assert parse_usage({"prompt_eval_count": 2, "eval_count": 1}).input_tokens == 2
    assert parse_usage({}) is None


@pytest.mark.asyncio
async def test_anthropic_sends_system_separately():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "content": [{"type": "text", "text": "hello"}],
            "usage": {"input_tokens": 7, "output_tokens": 2},
        })

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = AnthropicProvider(api_key="k", client=client)
    result = await provider.generate_text(GenerateTextParams(
        model="claude-3-5-haiku-latest",
        messages=[ChatMessage(role="system", content="be brief"), ChatMessage(role="user", content="hi")],
    ))

    assert result.text == "hello"
    assert result.usage.input_tokens == 7
    assert seen["url"].endswith("/messages")
    assert seen["body"]["system"] == "be brief"
    assert seen["body"]["messages"] == [{"role": "user", "content": "hi"}]


@pytest.mark.asyncio
async def test_http_error_is_normalized():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503, text="busy")))
    provider = OllamaProvider(base_url="http://ollama.local", client=client)

    with pytest.raises(ProviderRequestError) as exc_info:
        await provider.embed(EmbedParams(model="nomic-embed-text", inputs=["x"]))

    assert exc_info.value.status == 503
    assert exc_info.value.retryable is True
    assert exc_info.value.provider == "ollama"
