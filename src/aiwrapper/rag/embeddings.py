"""Batched chunk embedding."""

import logging
from typing import List, Optional

from ..providers.base import EmbedParams, LLMProvider
from ..utils.errors import EmbeddingMismatchError
from .types import RagChunk, RagChunkWithVector

logger = logging.getLogger(__name__)

DEFAULT_EMBED_BATCH_SIZE = 64


async def embed_chunks(
    chunks: List[RagChunk],
    provider: LLMProvider,
    model: str,
    batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
    timeout_ms: Optional[int] = None,
) -> List[RagChunkWithVector]:
    """
    Attach an embedding to every chunk, one batch at a time.

    Args:
        chunks: Chunks to embed, in order
        provider: Embedding-capable adapter
        model: Embedding model name
        batch_size: Inputs per provider call
        timeout_ms: Per-call timeout handed to the provider

    Returns:
        Chunks with embeddings, same order and length as the input

    Raises:
        EmbeddingMismatchError: If a batch returns a different number of vectors
    """
    if not chunks:
        return []

    batch_size = max(1, batch_size)
    with_vectors: List[RagChunkWithVector] = []

    for start in range(0, len(chunks), batch_size):
        batch = chunks[start:start + batch_size]
        response = await provider.embed(EmbedParams(
            model=model,
            inputs=[chunk.chunk_text for chunk in batch],
            timeout_ms=timeout_ms,
        ))

        if len(response.vectors) != len(batch):
            raise EmbeddingMismatchError(
                f"Embedding vector count mismatch for batch starting at {start}: "
                f"expected {len(batch)}, got {len(response.vectors)}"
            )

        for chunk, vector in zip(batch, response.vectors):
            with_vectors.append(RagChunkWithVector(**chunk.model_dump(), embedding=vector))

        logger.debug(
            f"[rag] Embedded batch {start // batch_size + 1}",
            extra={"batch_start": start, "batch_size": len(batch), "model": model},
        )

    logger.info(f"[rag] Embedded {len(with_vectors)} chunks", extra={"model": model})
    return with_vectors
