from sqlalchemy import Column, String, Integer, JSON, Numeric, DateTime, func
from .base import Base

class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, index=True)
    action = Column(String, nullable=False, index=True)
    event_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

class UsageEvent(Base):
    __tablename__ = "usage_events"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    use_case = Column(String, nullable=False)
    tokens_in = Column(Integer, nullable=False, default=0)
    tokens_out = Column(Integer, nullable=False, default=0)
    cost_estimate = Column(Numeric(12, 6), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
