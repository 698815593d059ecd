"""
Document and chunk storage for retrieval.

Implements:
- PgVectorStore: PostgreSQL + pgvector, cosine distance via `<=>`
- InMemoryVectorStore: same semantics in process memory for tests and local runs
"""

import json
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import text

from .types import RagChunkWithVector, RetrievedChunk
from .vectors import cosine_similarity, to_vector_literal

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "unknown"


def _parse_metadata(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return {}
        if isinstance(parsed, dict):
            return parsed
    return {}


def _finite_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalize_metadata(raw: Any, source: str, chunk_order: int, page: Optional[int] = None) -> Dict[str, Any]:
    """Guarantee `source` and `chunk_order` keys; keep any other stored keys."""
    metadata = _parse_metadata(raw)

    stored_source = metadata.get("source")
    metadata["source"] = stored_source if isinstance(stored_source, str) and stored_source.strip() else source

    stored_page = _finite_or_none(metadata.get("page"))
    if stored_page is not None:
        metadata["page"] = int(stored_page) if stored_page.is_integer() else stored_page
    elif page is not None:
        metadata["page"] = page
    else:
        metadata.pop("page", None)

    stored_order = _finite_or_none(metadata.get("chunk_order"))
    metadata["chunk_order"] = int(stored_order) if stored_order is not None else chunk_order
    return metadata


def _require(value: str, name: str) -> None:
    if not value or not value.strip():
        raise ValueError(f"upsert_document requires a non-empty {name}")


class VectorStore(ABC):
    """Per-user document store with cosine retrieval"""

    @abstractmethod
    async def upsert_document(
        self, user_id: str, title: str, source: str, chunks: List[RagChunkWithVector]
    ) -> str:
        ...

    @abstractmethod
    async def search(self, user_id: str, query_vector: List[float], k: int) -> List[RetrievedChunk]:
        ...


class PgVectorStore(VectorStore):
    """pgvector-backed store; each upsert runs in one transaction."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def upsert_document(
        self, user_id: str, title: str, source: str, chunks: List[RagChunkWithVector]
    ) -> str:
        """
        Insert or replace a document keyed by (user_id, title, source).

        Existing chunks of a matched document are deleted and replaced wholesale.

        Returns:
            Document ID
        """
        _require(user_id, "user_id")
        _require(title, "title")
        _require(source, "source")

        async with self.session_factory() as session:
            async with session.begin():
                existing = await session.execute(
                    text("""
                        SELECT id FROM documents
                        WHERE user_id = :user_id AND title = :title AND source = :source
                        ORDER BY created_at DESC
                        LIMIT 1
                    """),
                    {"user_id": user_id, "title": title, "source": source},
                )
                document_id = existing.scalar()

                if document_id is None:
                    document_id = str(uuid4())
                    await session.execute(
                        text("""
                            INSERT INTO documents (id, user_id, title, source, created_at, updated_at)
                            VALUES (:id, :user_id, :title, :source, now(), now())
                        """),
                        {"id": document_id, "user_id": user_id, "title": title, "source": source},
                    )
                else:
                    await session.execute(
                        text("UPDATE documents SET title = :title, source = :source, updated_at = now() WHERE id = :id"),
                        {"id": document_id, "title": title, "source": source},
                    )
                    await session.execute(
                        text("DELETE FROM chunks WHERE document_id = :id"),
                        {"id": document_id},
                    )

                for chunk in chunks:
                    await session.execute(
                        text("""
                            INSERT INTO chunks (document_id, chunk_text, chunk_order, embedding, metadata)
                            VALUES (:document_id, :chunk_text, :chunk_order, :embedding, CAST(:metadata AS jsonb))
                        """),
                        {
                            "document_id": document_id,
                            "chunk_text": chunk.chunk_text,
                            "chunk_order": chunk.chunk_order,
                            "embedding": to_vector_literal(chunk.embedding),
                            "metadata": json.dumps(normalize_metadata(chunk.metadata, source, chunk.chunk_order)),
                        },
                    )

        logger.info(
            f"[rag] Upserted document {document_id} with {len(chunks)} chunks",
            extra={"user_id": user_id, "source": source},
        )
        return document_id

    async def search(self, user_id: str, query_vector: List[float], k: int) -> List[RetrievedChunk]:
        """Rank the user's chunks by cosine similarity (1 - cosine distance)."""
        if not query_vector:
            return []

        sql = text("""
            SELECT
                c.id::text AS chunk_id,
                c.chunk_text,
                c.metadata,
                c.chunk_order,
                d.source AS document_source,
                1 - (CAST(c.embedding AS vector) <=> CAST(:vec AS vector)) AS score
            FROM chunks c
            INNER JOIN documents d ON d.id = c.document_id
            WHERE d.user_id = :user_id
            ORDER BY CAST(c.embedding AS vector) <=> CAST(:vec AS vector) ASC
            LIMIT :limit
        """)

        async with self.session_factory() as session:
            result = await session.execute(
                sql,
                {"user_id": user_id, "vec": to_vector_literal(query_vector), "limit": max(1, k)},
            )
            rows = result.fetchall()

        return [
            RetrievedChunk(
                chunk_id=str(row.chunk_id),
                chunk_text=row.chunk_text,
                metadata=normalize_metadata(
                    row.metadata,
                    row.document_source or DEFAULT_SOURCE,
                    int(_finite_or_none(row.chunk_order) or 0),
                ),
                score=_finite_or_none(row.score) or 0.0,
            )
            for row in rows
        ]


class InMemoryVectorStore(VectorStore):
    """Process-local store with the same upsert and ranking rules."""

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.chunks: Dict[str, Dict[str, Any]] = {}
        self._next_chunk_id = 1

    async def upsert_document(
        self, user_id: str, title: str, source: str, chunks: List[RagChunkWithVector]
    ) -> str:
        _require(user_id, "user_id")
        _require(title, "title")
        _require(source, "source")

        document_id = next(
            (
                doc_id for doc_id, doc in self.documents.items()
                if doc["user_id"] == user_id and doc["title"] == title and doc["source"] == source
            ),
            None,
        )
        if document_id is None:
            document_id = str(uuid4())
            self.documents[document_id] = {"user_id": user_id, "title": title, "source": source}
        else:
            self.chunks = {cid: c for cid, c in self.chunks.items() if c["document_id"] != document_id}

        for chunk in chunks:
            chunk_id = str(self._next_chunk_id)
            self._next_chunk_id += 1
            self.chunks[chunk_id] = {
                "document_id": document_id,
                "chunk_text": chunk.chunk_text,
                "chunk_order": chunk.chunk_order,
                "embedding": list(chunk.embedding),
                "metadata": normalize_metadata(chunk.metadata, source, chunk.chunk_order),
            }
        return document_id

    async def search(self, user_id: str, query_vector: List[float], k: int) -> List[RetrievedChunk]:
        if not query_vector:
            return []

        ranked = []
        for chunk_id, chunk in self.chunks.items():
            document = self.documents[chunk["document_id"]]
            if document["user_id"] != user_id:
                continue
            ranked.append(RetrievedChunk(
                chunk_id=chunk_id,
                chunk_text=chunk["chunk_text"],
                metadata=dict(chunk["metadata"]),
                score=cosine_similarity(query_vector, chunk["embedding"]),
            ))

        ranked.sort(key=lambda r: r.score, reverse=True)
        return ranked[:max(1, k)]
