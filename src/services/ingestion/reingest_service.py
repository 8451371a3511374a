"""Re-ingestion with cache invalidation.

Replacing a document must not leave cached answers that were grounded on
its old text.  The cascade runs in this order:

    1. list the ids of the document's current chunks
    2. invalidate every cache entry that references any of them
    3. delete the old chunks
    4. ingest the new content

The steps are not transactional.  A chat request racing the cascade may
still hit an entry before step 2 completes, or cache an answer built from
chunks deleted in step 3; such entries age out via their TTL.
"""

from __future__ import annotations

import structlog

from src.interfaces.document_store import IDocumentStore
from src.interfaces.semantic_cache import ISemanticCache
from src.models.jobs import IngestJob
from src.services.ingestion.ingest_pipeline import IngestPipeline
from src.utils.logging import get_logger


class ReingestService:
    """Invalidate, delete, then ingest a replacement document."""

    def __init__(
        self,
        document_store: IDocumentStore,
        semantic_cache: ISemanticCache,
        ingest_pipeline: IngestPipeline,
    ) -> None:
        self._document_store = document_store
        self._semantic_cache = semantic_cache
        self._ingest_pipeline = ingest_pipeline
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def reingest(self, document_id: str, file_name: str, content: str) -> IngestJob:
        """Replace *document_id*'s chunks with *content*; return the new ingest job."""
        chunk_ids = await self._document_store.list_chunk_ids_by_document_id(document_id)

        invalidated = 0
        if chunk_ids:
            invalidated = await self._semantic_cache.invalidate_by_chunk_ids(chunk_ids)

        deleted = await self._document_store.delete_by_document_id(document_id)

        self._logger.info(
            "reingest_invalidated",
            document_id=document_id,
            old_chunks=len(chunk_ids),
            cache_entries_invalidated=invalidated,
            chunks_deleted=deleted,
        )
        return await self._ingest_pipeline.ingest(document_id, file_name, content)
