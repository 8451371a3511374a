"""Similarity-filtered chunk retrieval for answer generation.

Asks the document store for the ``top_k`` nearest chunks, drops anything
scoring below ``min_score`` and returns the survivors best-first.  Equal
scores keep the order the store returned them in.
"""

from __future__ import annotations

import structlog

from src.interfaces.document_store import IDocumentStore
from src.models.rag import DocumentChunk
from src.utils.logging import get_logger


class RetrieverService:
    """Top-k vector search with a minimum-score cut-off."""

    def __init__(
        self,
        document_store: IDocumentStore,
        top_k: int = 5,
        min_score: float = 0.75,
    ) -> None:
        if top_k < 1:
            raise ValueError("top_k must be >= 1")
        self._document_store = document_store
        self._top_k = top_k
        self._min_score = min_score
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def retrieve(self, query_vector: list[float]) -> list[DocumentChunk]:
        """Return chunks scoring at least ``min_score``, highest score first."""
        results = await self._document_store.search_by_vector(query_vector, self._top_k)

        kept = [r for r in results if r.score >= self._min_score]
        # sorted() is stable, so ties stay in store order.
        kept = sorted(kept, key=lambda r: r.score, reverse=True)

        self._logger.info(
            "retrieval_complete",
            total=len(results),
            filtered=len(kept),
            threshold=self._min_score,
            top_score=kept[0].score if kept else None,
        )
        return [r.item for r in kept]
