"""Retriever for semantic search over an embedding index.

Handles:
- Query embedding generation
- Cosine similarity scoring against every stored vector
- Stable top-K ranking
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import structlog

from docqa import config
from docqa.errors import DimensionMismatchError
from docqa.llm_client import OpenAIClient
from docqa.rag.store import VectorIndex

logger = structlog.get_logger()


@dataclass
class ScoredCandidate:
    """A stored chunk scored against one query."""

    index: int
    score: float
    content: str

    @property
    def position(self) -> int:
        """1-indexed chunk position, as shown to users."""
        return self.index + 1


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Returns exactly 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    if va.shape != vb.shape:
        raise DimensionMismatchError(va.shape[0], vb.shape[0])

    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0

    return float(np.dot(va, vb) / denom)


def score_chunks(index: VectorIndex, query_vector: Sequence[float]) -> List[ScoredCandidate]:
    """Score every chunk of the index against a query vector.

    Returns:
        Candidates sorted by descending score, ties in index order

    Raises:
        DimensionMismatchError: If the query length differs from the index dimension
    """
    query = np.asarray(query_vector, dtype=np.float64)
    if query.ndim != 1 or query.shape[0] != index.dimension:
        raise DimensionMismatchError(index.dimension, query.size, "query")

    matrix = np.asarray(index.embeddings, dtype=np.float64)

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    safe_norms = np.where(norms == 0, 1.0, norms)
    scores = np.where(norms == 0, 0.0, dots / safe_norms)

    candidates = [
        ScoredCandidate(index=i, score=float(score), content=index.chunks[i])
        for i, score in enumerate(scores)
    ]

    # list.sort is stable, so equal scores keep ascending index order
    candidates.sort(key=lambda c: c.score, reverse=True)

    return candidates


def rank(index: VectorIndex, query_vector: Sequence[float], k: int = None) -> List[ScoredCandidate]:
    """Top-k scored candidates (all of them when the index holds fewer than k)."""
    k = config.RETRIEVAL_TOP_K if k is None else k
    if k < 1:
        raise ValueError(f"k must be at least 1, got {k}")

    return score_chunks(index, query_vector)[:k]


def retrieve(index: VectorIndex, query_vector: Sequence[float], k: int = None) -> List[str]:
    """Texts of the top-k chunks for a query vector, best first."""
    return [c.content for c in rank(index, query_vector, k)]


class Retriever:
    """Semantic retriever over a loaded index."""

    def __init__(
        self,
        index: VectorIndex,
        client: OpenAIClient,
        embedding_model: str = None,
        top_k: int = None,
    ):
        """Initialize the retriever.

        Args:
            index: Loaded or freshly built index
            client: API client used to embed queries
            embedding_model: Embedding model name (default from config)
            top_k: Number of results to retrieve (default from config)
        """
        self.index = index
        self.client = client
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k

    async def retrieve(
        self, query: str, top_k: Optional[int] = None
    ) -> List[ScoredCandidate]:
        """Retrieve the most relevant chunks for a query.

        Args:
            query: User question
            top_k: Number of results to return (overrides default)

        Returns:
            List of ScoredCandidate objects, best first

        Raises:
            EmbeddingServiceError: If embedding the query fails
            DimensionMismatchError: If the query vector does not fit the index
        """
        top_k = self.top_k if top_k is None else top_k

        logger.info("retrieval_started", query_length=len(query), top_k=top_k)

        query_vector = await self.client.embeddings(query, model=self.embedding_model)
        results = rank(self.index, query_vector, top_k)

        logger.info(
            "retrieval_completed",
            results_returned=len(results),
            top_score=results[0].score if results else None,
        )

        return results
