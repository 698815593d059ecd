from sqlalchemy import Column, String, Text, Integer, JSON, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin

class RagDocument(Base, TimestampMixin):
    __tablename__ = "documents"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    source = Column(String, nullable=False)

    # Relationships
    chunks = relationship("RagChunk", back_populates="document", cascade="all, delete-orphan")

class RagChunk(Base):
    __tablename__ = "chunks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(String, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    chunk_text = Column(Text, nullable=False)
    chunk_order = Column(Integer, nullable=False)
    embedding = Column(String, nullable=False)  # pgvector literal, cast to vector in SQL
    chunk_metadata = Column("metadata", JSON, nullable=False, default=dict)

    # Relationships
    document = relationship("RagDocument", back_populates="chunks")
