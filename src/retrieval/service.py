"""Retrieval service layer implementation.

Contains the deterministic scoring helpers and the search entry point used by
the pipeline, the CLI and the API. Search never raises: any problem with
embeddings degrades to lexical scoring.
"""

import re
from collections.abc import Sequence
from typing import Protocol

import numpy as np

from src.ingestion.schemas import Chunk, RetrievalResult
from src.utils.logging import get_logger

logger = get_logger(__name__)


class QueryEmbedder(Protocol):
    """Anything that can embed a query string (e.g. EmbeddingService)."""

    async def embed_query(self, text: str) -> list[float]: ...


# ==============================================================================
# Scoring Helpers
# ==============================================================================


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors.

    Returns 0.0 when either vector has zero norm or the dimensions differ.

    Examples:
        >>> cosine_similarity([1.0, 0.0], [1.0, 0.0])
        1.0
        >>> cosine_similarity([1.0, 0.0], [0.0, 0.0])
        0.0
    """
    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)

    if vec_a.shape != vec_b.shape or vec_a.size == 0:
        return 0.0

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / (norm_a * norm_b))


def keyword_score(text: str, query: str) -> int:
    """Count case-insensitive, non-overlapping occurrences of each query token.

    Examples:
        >>> keyword_score("Cells divide. Cells grow.", "cells grow")
        3
    """
    haystack = text.lower()
    return sum(
        len(re.findall(re.escape(token), haystack)) for token in query.lower().split()
    )


def _top_k(chunks: Sequence[Chunk], scores: Sequence[float], top_k: int) -> list[RetrievalResult]:
    # sorted() is stable, so equal scores keep chunk order
    order = sorted(range(len(chunks)), key=lambda i: scores[i], reverse=True)
    return [
        RetrievalResult(chunk=chunks[i], score=float(scores[i]), rank=rank)
        for rank, i in enumerate(order[:top_k], start=1)
    ]


def rank_lexical(chunks: Sequence[Chunk], query: str, top_k: int) -> list[RetrievalResult]:
    """Rank chunks by keyword occurrence count."""
    scores = [keyword_score(chunk.text, query) for chunk in chunks]
    return _top_k(chunks, scores, top_k)


def rank_vector(
    chunks: Sequence[Chunk],
    embeddings: Sequence[Sequence[float]],
    query_embedding: Sequence[float],
    top_k: int,
) -> list[RetrievalResult]:
    """Rank chunks by cosine similarity to the query embedding."""
    scores = [cosine_similarity(query_embedding, embedding) for embedding in embeddings]
    return _top_k(chunks, scores, top_k)


# ==============================================================================
# Search
# ==============================================================================


async def rank_chunks(
    chunks: Sequence[Chunk],
    embeddings: Sequence[Sequence[float]] | None,
    query: str,
    top_k: int = 5,
    embedding_service: QueryEmbedder | None = None,
) -> list[RetrievalResult]:
    """Rank a content item's chunks against a query.

    The vector path is used only when embeddings align 1:1 with chunks, an
    embedding service is available, and the query embeds successfully with
    the same dimension as the stored vectors. Otherwise chunks are scored
    lexically.

    Args:
        chunks: Chunks of one content item.
        embeddings: Vectors aligned with chunks, or None.
        query: User query.
        top_k: Maximum number of results.
        embedding_service: Service used to embed the query.

    Returns:
        At most top_k results ordered by descending score, ranks from 1.
    """
    if top_k <= 0 or not chunks:
        return []

    vectors_valid = embeddings is not None and len(embeddings) == len(chunks)

    if not vectors_valid or embedding_service is None:
        logger.info(
            "lexical_search_selected",
            chunks=len(chunks),
            embeddings_present=embeddings is not None,
            embeddings_aligned=vectors_valid,
            embedder_available=embedding_service is not None,
        )
        return rank_lexical(chunks, query, top_k)

    try:
        query_embedding = await embedding_service.embed_query(query)
    except Exception as e:
        logger.warning(
            "query_embedding_failed",
            error_type=type(e).__name__,
            error=str(e),
        )
        return rank_lexical(chunks, query, top_k)

    if embeddings and len(query_embedding) != len(embeddings[0]):
        logger.warning(
            "embedding_dimension_mismatch",
            query_dim=len(query_embedding),
            chunk_dim=len(embeddings[0]),
        )
        return rank_lexical(chunks, query, top_k)

    results = rank_vector(chunks, embeddings, query_embedding, top_k)
    logger.info(
        "vector_search_completed",
        chunks=len(chunks),
        results=len(results),
        top_score=results[0].score if results else None,
    )
    return results


async def search(
    chunks: Sequence[Chunk],
    embeddings: Sequence[Sequence[float]] | None,
    query: str,
    top_k: int = 5,
    embedding_service: QueryEmbedder | None = None,
) -> list[Chunk]:
    """Return the top_k most relevant chunks for a query.

    Examples:
        >>> await search(chunks, None, "photosynthesis", top_k=3)
        [Chunk(...), ...]
    """
    results = await rank_chunks(chunks, embeddings, query, top_k, embedding_service)
    return [result.chunk for result in results]
