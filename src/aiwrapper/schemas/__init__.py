from .jobs import (
    ProviderName,
    TextJobInput,
    PdfJobInput,
    JobInput,
    RagOptions,
    JobOptions,
    PersistedJobInput,
    QueuePayload,
)

__all__ = [
    "ProviderName",
    "TextJobInput",
    "PdfJobInput",
    "JobInput",
    "RagOptions",
    "JobOptions",
    "PersistedJobInput",
    "QueuePayload",
]
