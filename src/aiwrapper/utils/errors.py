"""Shared error definitions for the job pipeline."""

from typing import Any, Dict, List, Optional


class AIWrapperError(Exception):
    """Base exception for the job pipeline."""
    pass


class PermanentError(AIWrapperError):
    """Error that should not be retried."""
    pass


class RetryableError(AIWrapperError):
    """Error that can be retried with backoff."""
    pass


class JobNotFound(PermanentError):
    """Job row not found in database."""
    pass


class InputValidationError(AIWrapperError):
    """Job input is empty, malformed or not allowed for the vertical."""
    pass


class JobTimeoutError(RetryableError):
    """Pipeline did not settle within the job's wall-clock budget."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"Job timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class NoProviderAvailable(AIWrapperError):
    """None of the requested providers is configured."""
    pass


class EmbeddingMismatchError(AIWrapperError):
    """Embedding provider returned a different number of vectors than inputs."""
    pass


class ProviderRequestError(AIWrapperError):
    """Normalized failure of a single provider request."""

    def __init__(
        self,
        message: str,
        provider: str,
        model: str,
        status: Optional[int] = None,
        retryable: bool = False,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status = status
        self.retryable = retryable
        self.code = code


STRUCTURED_OUTPUT_ERROR_CODE = "STRUCTURED_OUTPUT_SCHEMA_VALIDATION_FAILED"


class StructuredOutputValidationFailure(PermanentError):
    """Two consecutive model responses failed the vertical's output schema."""

    code = STRUCTURED_OUTPUT_ERROR_CODE

    def __init__(
        self,
        vertical_id: str,
        stage: str,
        issues: List[Dict[str, Any]],
        raw_preview: str,
        retry_attempted: bool = True,
    ):
        super().__init__(f"{STRUCTURED_OUTPUT_ERROR_CODE}: vertical={vertical_id} stage={stage}")
        self.vertical_id = vertical_id
        self.stage = stage
        self.issues = issues
        self.raw_preview = raw_preview
        self.retry_attempted = retry_attempted

    def to_payload(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "verticalId": self.vertical_id,
            "stage": self.stage,
            "issues": self.issues,
            "rawPreview": self.raw_preview,
            "retryAttempted": self.retry_attempted,
        }
