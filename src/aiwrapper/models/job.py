from sqlalchemy import Column, String, Text, JSON, Enum
import enum
from .base import Base, TimestampMixin

class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

TERMINAL_STATUSES = (JobStatus.SUCCEEDED, JobStatus.FAILED)

class Job(Base, TimestampMixin):
    __tablename__ = "jobs"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    use_case = Column(String, nullable=False)
    status = Column(
        Enum(JobStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=JobStatus.QUEUED,
        nullable=False,
        index=True,
    )
    input = Column(JSON, nullable=False, default=dict)  # {"input": JobInput, "options": JobOptions}
    result = Column(JSON, nullable=False, default=dict)
    citations = Column(JSON, nullable=False, default=list)
    error = Column(Text)
