"""Document ingestion: chunking, the async ingest pipeline and re-ingestion.

1. **Chunk** (chunker.py) -- FixedSizeChunker or SentenceAwareChunker,
   selected from settings by ``build_chunker``.
2. **Embed + store** (ingest_pipeline.py / IngestPipeline) -- runs on the
   ingest queue with bounded, fail-fast fan-out and job tracking.
3. **Replace** (reingest_service.py / ReingestService) -- invalidates
   cached answers built on the old chunks before re-ingesting.
"""

from src.services.ingestion.chunker import FixedSizeChunker, SentenceAwareChunker, build_chunker
from src.services.ingestion.ingest_pipeline import IngestPipeline
from src.services.ingestion.reingest_service import ReingestService

__all__ = [
    "FixedSizeChunker",
    "IngestPipeline",
    "ReingestService",
    "SentenceAwareChunker",
    "build_chunker",
]
