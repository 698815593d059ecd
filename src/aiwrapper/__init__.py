"""AI Wrapper job pipeline: queue workers, provider fallback, RAG and output contracts."""

__version__ = "0.1.0"

from .config import settings, Settings
from .utils import (
    AIWrapperError,
    PermanentError,
    RetryableError,
    JobNotFound,
    InputValidationError,
    JobTimeoutError,
    NoProviderAvailable,
    StructuredOutputValidationFailure,
    setup_logging,
    Deadline,
)

__all__ = [
    "__version__",
    "settings",
    "Settings",
    "AIWrapperError",
    "PermanentError",
    "RetryableError",
    "JobNotFound",
    "InputValidationError",
    "JobTimeoutError",
    "NoProviderAvailable",
    "StructuredOutputValidationFailure",
    "setup_logging",
    "Deadline",
]
