"""ChromaDB document store adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IDocumentStore`.
The collection uses cosine distance, so ``score = 1 - distance``.  Chunk
provenance (document id, index, offset, ingest time) is stored as
metadata; listing and deleting by document walk the collection in pages
to stay under SQLite's bind-parameter limit.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

# Disable ChromaDB's PostHog telemetry before importing chromadb.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from src.interfaces.document_store import IDocumentStore
from src.models.rag import DocumentChunk, SimilarityResult
from src.utils.errors import AnswerCacheError, ProviderError, TransientExternalError
from src.utils.retry import RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SIZE = 1000

_T = TypeVar("_T")


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Stops ChromaDB from loading its default ONNX model.

    Every chunk arrives with a pre-computed embedding, so the collection's
    own embedding function must never run.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("Embeddings are pre-computed; ChromaDB must not embed.")

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBDocumentStore(IDocumentStore):
    """Document store backed by ChromaDB with local persistence."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "answer_cache_documents",
        retry_factory: Callable[[], RetryPolicy] | None = None,
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._retry_factory = retry_factory or RetryPolicy
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections persisted with a different embedding function reject
        # ours; reopen without one since embeddings are external anyway.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    # ------------------------------------------------------------------
    # IDocumentStore implementation
    # ------------------------------------------------------------------

    async def store_chunk(self, chunk: DocumentChunk) -> None:
        def _upsert() -> None:
            self._collection.upsert(
                ids=[chunk.chunk_id],
                embeddings=[chunk.embedding],
                documents=[chunk.text],
                metadatas=[self._chunk_to_metadata(chunk)],
            )

        await self._call("store_chunk", _upsert)

    async def search_by_vector(
        self,
        vector: list[float],
        top_k: int,
    ) -> list[SimilarityResult[DocumentChunk]]:
        def _query() -> list[SimilarityResult[DocumentChunk]]:
            count = self._collection.count()
            if count == 0:
                return []
            results = self._collection.query(
                query_embeddings=[vector],
                n_results=min(top_k, count),
                include=["documents", "metadatas", "distances"],
            )
            if not results["ids"] or not results["ids"][0]:
                return []

            ids = results["ids"][0]
            documents = results["documents"][0] if results["documents"] else [""] * len(ids)
            metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
            distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)

            scored = [
                SimilarityResult[DocumentChunk](
                    item=self._metadata_to_chunk(chunk_id, text, meta),
                    score=max(-1.0, min(1.0, 1.0 - distance)),
                )
                for chunk_id, text, meta, distance in zip(
                    ids, documents, metadatas, distances, strict=True
                )
            ]
            scored.sort(key=lambda r: r.score, reverse=True)
            return scored

        retrieved = await self._call("search_by_vector", _query)
        logger.info(
            "chromadb_query",
            results_count=len(retrieved),
            top_score=retrieved[0].score if retrieved else 0.0,
        )
        return retrieved

    async def delete_by_document_id(self, document_id: str) -> int:
        def _delete_all() -> int:
            deleted = 0
            while True:
                # Always offset 0: each pass removes the page just read.
                page = self._collection.get(
                    where={"document_id": document_id},
                    include=[],
                    limit=_PAGE_SIZE,
                    offset=0,
                )
                ids = page["ids"] or []
                if not ids:
                    return deleted
                self._collection.delete(ids=ids)
                deleted += len(ids)

        deleted = await self._call("delete_by_document_id", _delete_all)
        logger.info("chromadb_delete_by_document", document_id=document_id, deleted_count=deleted)
        return deleted

    async def list_chunk_ids_by_document_id(self, document_id: str) -> list[str]:
        def _list_all() -> list[str]:
            chunk_ids: list[str] = []
            offset = 0
            while True:
                page = self._collection.get(
                    where={"document_id": document_id},
                    include=[],
                    limit=_PAGE_SIZE,
                    offset=offset,
                )
                ids = page["ids"] or []
                chunk_ids.extend(ids)
                if len(ids) < _PAGE_SIZE:
                    return chunk_ids
                offset += _PAGE_SIZE

        return await self._call("list_chunk_ids_by_document_id", _list_all)

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _call(self, operation: str, fn: Callable[[], _T]) -> _T:
        """Run a synchronous collection call under the retry policy."""

        async def _attempt() -> _T:
            try:
                return fn()
            except AnswerCacheError:
                raise
            except ValueError as exc:
                raise ProviderError(
                    message=f"ChromaDB {operation} rejected: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            except Exception as exc:
                raise TransientExternalError(
                    message=f"ChromaDB {operation} failed: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

        return await self._retry_factory().run(_attempt, operation_name=f"chromadb.{operation}")

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, str | int]:
        return {
            "document_id": chunk.document_id,
            "chunk_index": chunk.chunk_index,
            "char_offset": chunk.char_offset,
            "ingested_at": chunk.ingested_at.isoformat(),
        }

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, text: str | None, meta: dict[str, Any] | None) -> DocumentChunk:
        meta = meta or {}
        fields: dict[str, Any] = {
            "chunk_id": chunk_id,
            "document_id": meta.get("document_id", ""),
            "text": text or "",
            "chunk_index": int(meta.get("chunk_index", 0)),
            "char_offset": int(meta.get("char_offset", 0)),
        }
        ingested_at = meta.get("ingested_at")
        if ingested_at:
            fields["ingested_at"] = datetime.fromisoformat(ingested_at)
        return DocumentChunk(**fields)
