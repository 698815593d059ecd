from .errors import (
    AIWrapperError,
    PermanentError,
    RetryableError,
    JobNotFound,
    InputValidationError,
    JobTimeoutError,
    NoProviderAvailable,
    EmbeddingMismatchError,
    ProviderRequestError,
    StructuredOutputValidationFailure,
    STRUCTURED_OUTPUT_ERROR_CODE,
)
from .logging import setup_logging, JSONFormatter
from .redis import get_redis_client, close_redis
from .asyncio import run_async
from .deadline import Deadline

__all__ = [
    "AIWrapperError",
    "PermanentError",
    "RetryableError",
    "JobNotFound",
    "InputValidationError",
    "JobTimeoutError",
    "NoProviderAvailable",
    "EmbeddingMismatchError",
    "ProviderRequestError",
    "StructuredOutputValidationFailure",
    "STRUCTURED_OUTPUT_ERROR_CODE",
    "setup_logging",
    "JSONFormatter",
    "get_redis_client",
    "close_redis",
    "run_async",
    "Deadline",
]
