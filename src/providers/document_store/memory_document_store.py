"""In-memory document store with brute-force cosine search.

Suitable for development, tests and single-process demos.  Every method
runs without awaiting, so each call is atomic on the event loop.
"""

from __future__ import annotations

import structlog

from src.interfaces.document_store import IDocumentStore
from src.models.rag import DocumentChunk, SimilarityResult
from src.utils.vectors import cosine_similarity

logger = structlog.get_logger(logger_name=__name__)


class InMemoryDocumentStore(IDocumentStore):
    """Dict-backed chunk store keyed by ``chunk_id``."""

    def __init__(self) -> None:
        self._chunks: dict[str, DocumentChunk] = {}

    def __len__(self) -> int:
        return len(self._chunks)

    # ------------------------------------------------------------------
    # IDocumentStore implementation
    # ------------------------------------------------------------------

    async def store_chunk(self, chunk: DocumentChunk) -> None:
        self._chunks[chunk.chunk_id] = chunk

    async def search_by_vector(
        self,
        vector: list[float],
        top_k: int,
    ) -> list[SimilarityResult[DocumentChunk]]:
        scored = [
            SimilarityResult[DocumentChunk](item=chunk, score=cosine_similarity(vector, chunk.embedding))
            for chunk in self._chunks.values()
            if chunk.embedding
        ]
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:top_k]

    async def delete_by_document_id(self, document_id: str) -> int:
        doomed = [cid for cid, c in self._chunks.items() if c.document_id == document_id]
        for chunk_id in doomed:
            del self._chunks[chunk_id]
        logger.info("memory_store_delete_by_document", document_id=document_id, deleted_count=len(doomed))
        return len(doomed)

    async def list_chunk_ids_by_document_id(self, document_id: str) -> list[str]:
        return [cid for cid, c in self._chunks.items() if c.document_id == document_id]

    def get_provider_name(self) -> str:
        return "memory_document_store"

    def is_available(self) -> bool:
        return True
