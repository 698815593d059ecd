from .base import Base, TimestampMixin
from .job import Job, JobStatus, TERMINAL_STATUSES
from .rag import RagDocument, RagChunk
from .events import AuditEvent, UsageEvent

__all__ = [
    "Base",
    "TimestampMixin",
    "Job",
    "JobStatus",
    "TERMINAL_STATUSES",
    "RagDocument",
    "RagChunk",
    "AuditEvent",
    "UsageEvent",
]
