"""Query-time retrieval and cited context assembly."""

import logging
import math
from typing import List, Optional

from ..providers.base import EmbedParams, LLMProvider
from .store import VectorStore
from .types import BuiltContext, Citation, RetrievedChunk

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 6


async def retrieve_top_k(
    store: VectorStore,
    user_id: str,
    query_text: str,
    k: int,
    provider: LLMProvider,
    model: str,
    timeout_ms: Optional[int] = None,
) -> List[RetrievedChunk]:
    """
    Embed the query and return the user's k most similar chunks.

    Only results with a finite, positive score are returned. Results never
    include chunks owned by another user.
    """
    response = await provider.embed(EmbedParams(model=model, inputs=[query_text], timeout_ms=timeout_ms))
    query_vector = response.vectors[0] if response.vectors else []
    if not query_vector:
        return []

    results = await store.search(user_id, query_vector, max(1, k))
    retrieved = [r for r in results if math.isfinite(r.score) and r.score > 0][:max(1, k)]

    logger.info(f"[rag] Retrieved {len(retrieved)} chunks", extra={"user_id": user_id, "k": k})
    return retrieved


def build_context(retrieved: List[RetrievedChunk]) -> BuiltContext:
    citations: List[Citation] = []
    citation_map = {}
    blocks = []

    for chunk in retrieved:
        citation_id = f"C{chunk.chunk_id}"
        page = chunk.metadata.get("page")
        page_suffix = f" p.{page}" if isinstance(page, (int, float)) and not isinstance(page, bool) else ""

        citations.append(Citation(
            citation_id=citation_id,
            chunk_id=chunk.chunk_id,
            chunk_text=chunk.chunk_text,
            score=chunk.score,
            metadata=chunk.metadata,
        ))
        citation_map[citation_id] = chunk.chunk_id
        blocks.append(
            f"[{citation_id}] source={chunk.metadata.get('source')}{page_suffix} "
            f"chunk={chunk.metadata.get('chunk_order')}\n{chunk.chunk_text}"
        )

    return BuiltContext(context="\n\n".join(blocks), citations=citations, citation_map=citation_map)
