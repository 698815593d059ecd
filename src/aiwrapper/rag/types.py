"""Chunk and retrieval records passed between the RAG stages."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RagChunk(BaseModel):
    chunk_text: str
    chunk_order: int
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RagChunkWithVector(RagChunk):
    embedding: List[float]


class RetrievedChunk:
    """Stored chunk ranked against a query vector"""

    def __init__(self, chunk_id: str, chunk_text: str, metadata: Dict[str, Any], score: float):
        self.chunk_id = chunk_id
        self.chunk_text = chunk_text
        self.metadata = metadata
        self.score = score

    def to_dict(self):
        return {
            "chunk_id": self.chunk_id,
            "chunk_text": self.chunk_text,
            "metadata": self.metadata,
            "score": float(self.score),
        }


class Citation:
    """Short label mapping back to a retrieved chunk"""

    def __init__(
        self,
        citation_id: str,
        chunk_id: str,
        chunk_text: str,
        score: float,
        metadata: Dict[str, Any],
    ):
        self.citation_id = citation_id
        self.chunk_id = chunk_id
        self.chunk_text = chunk_text
        self.score = score
        self.metadata = metadata

    def to_dict(self):
        return {
            "citation_id": self.citation_id,
            "chunk_id": self.chunk_id,
            "chunk_text": self.chunk_text,
            "score": float(self.score),
            "metadata": self.metadata,
        }


class BuiltContext:
    def __init__(self, context: str, citations: List[Citation], citation_map: Dict[str, str]):
        self.context = context
        self.citations = citations
        self.citation_map = citation_map


def chunk_metadata(source: str, chunk_order: int, page: Optional[int] = None) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"source": source, "chunk_order": chunk_order}
    if page is not None:
        metadata["page"] = page
    return metadata
