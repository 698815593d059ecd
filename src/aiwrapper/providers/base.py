"""Provider adapter contract shared by every LLM backend."""

from abc import ABC, abstractmethod
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field

ProviderName = Literal["openai", "anthropic", "google", "ollama"]
MessageRole = Literal["system", "user", "assistant"]

RETRYABLE_STATUSES = (408, 409, 425, 429)


def is_retryable_status(status: Optional[int]) -> bool:
    """Timeouts and network failures carry no status and are always retryable."""
    if status is None:
        return True
    return status in RETRYABLE_STATUSES or status >= 500


class ChatMessage(BaseModel):
    role: MessageRole
    content: str


class ProviderUsage(BaseModel):
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class GenerateTextParams(BaseModel):
    model: str
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    timeout_ms: Optional[int] = None


class GenerateTextResult(BaseModel):
    text: str
    usage: Optional[ProviderUsage] = None


class EmbedParams(BaseModel):
    model: str
    inputs: List[str]
    timeout_ms: Optional[int] = None


class EmbedResult(BaseModel):
    vectors: List[List[float]] = Field(default_factory=list)


def parse_usage(usage: Any) -> Optional[ProviderUsage]:
    """Normalize the usage block of any supported vendor response."""
    if not isinstance(usage, dict):
        return None

    def first_int(*keys: str) -> Optional[int]:
        for key in keys:
            value = usage.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return int(value)
        return None

    input_tokens = first_int("prompt_tokens", "input_tokens", "promptTokenCount", "prompt_eval_count")
    output_tokens = first_int("completion_tokens", "output_tokens", "candidatesTokenCount", "eval_count")
    total_tokens = first_int("total_tokens", "totalTokenCount")

    if input_tokens is None and output_tokens is None and total_tokens is None:
        return None

    return ProviderUsage(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total_tokens)


def split_system_messages(messages: List[ChatMessage]) -> tuple:
    """Return (joined system prompt or None, non-system turns)."""
    system = "\n\n".join(
        m.content.strip() for m in messages if m.role == "system" and m.content.strip()
    )
    conversation = [m for m in messages if m.role != "system"]
    return (system or None), conversation


class LLMProvider(ABC):
    """Adapter for one vendor's text generation and embedding endpoints."""

    name: ProviderName

    @abstractmethod
    async def generate_text(self, params: GenerateTextParams) -> GenerateTextResult:
        ...

    @abstractmethod
    async def embed(self, params: EmbedParams) -> EmbedResult:
        ...

    def _timeout_seconds(self, timeout_ms: Optional[int], default_ms: int) -> float:
        return (timeout_ms if timeout_ms is not None else default_ms) / 1000.0

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name}>"


def check_vector_values(vectors: Any, provider: str, key: str = "embedding") -> List[List[float]]:
    """Validate a list of numeric vectors from a vendor payload."""
    result: List[List[float]] = []
    for index, item in enumerate(vectors):
        values = item.get(key) if isinstance(item, dict) else None
        if not isinstance(values, list):
            raise ValueError(f"{provider} embeddings response item {index} missing {key}")
        for value in values:
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ValueError(f"{provider} embeddings response item {index} has non-numeric value")
        result.append([float(v) for v in values])
    return result

__all__ = [
    "ProviderName",
    "MessageRole",
    "ChatMessage",
    "ProviderUsage",
    "GenerateTextParams",
    "GenerateTextResult",
    "EmbedParams",
    "EmbedResult",
    "LLMProvider",
    "parse_usage",
    "split_system_messages",
    "check_vector_values",
    "is_retryable_status",
    "RETRYABLE_STATUSES",
]
