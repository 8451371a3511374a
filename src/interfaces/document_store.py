"""Abstract base class for the document chunk store.

The document store holds every :class:`~src.models.rag.DocumentChunk`
with its embedding and answers nearest-neighbour queries for the
retriever.  It also supports the re-ingest cascade, which must list and
delete all chunks of one document.  Both of those walk the store in
pages, so no single call has to materialise an unbounded result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.rag import DocumentChunk, SimilarityResult


# Concrete implementations:
#   ChromaDBDocumentStore: persistent, cosine HNSW index
#   InMemoryDocumentStore: process-local, brute-force cosine
# Located in: src/providers/document_store/
class IDocumentStore(ABC):
    """Contract for chunk storage and vector search."""

    @abstractmethod
    async def store_chunk(self, chunk: DocumentChunk) -> None:
        """Insert *chunk*, replacing any existing chunk with the same id."""

    @abstractmethod
    async def search_by_vector(
        self,
        vector: list[float],
        top_k: int,
    ) -> list[SimilarityResult[DocumentChunk]]:
        """Return up to *top_k* chunks ordered by descending similarity.

        ``score`` is ``1 - cosine_distance``.
        """

    @abstractmethod
    async def delete_by_document_id(self, document_id: str) -> int:
        """Delete every chunk of *document_id*; return how many were removed."""

    @abstractmethod
    async def list_chunk_ids_by_document_id(self, document_id: str) -> list[str]:
        """Return the ids of every chunk belonging to *document_id*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
