from .types import RagChunk, RagChunkWithVector, RetrievedChunk, Citation, BuiltContext
from .chunking import chunk_text, DEFAULT_CHUNK_SIZE, DEFAULT_CHUNK_OVERLAP
from .embeddings import embed_chunks, DEFAULT_EMBED_BATCH_SIZE
from .vectors import cosine_similarity, to_vector_literal, parse_vector_literal
from .store import VectorStore, PgVectorStore, InMemoryVectorStore, normalize_metadata
from .retrieval import retrieve_top_k, build_context

__all__ = [
    "RagChunk",
    "RagChunkWithVector",
    "RetrievedChunk",
    "Citation",
    "BuiltContext",
    "chunk_text",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_CHUNK_OVERLAP",
    "embed_chunks",
    "DEFAULT_EMBED_BATCH_SIZE",
    "cosine_similarity",
    "to_vector_literal",
    "parse_vector_literal",
    "VectorStore",
    "PgVectorStore",
    "InMemoryVectorStore",
    "normalize_metadata",
    "retrieve_top_k",
    "build_context",
]
