"""Retrieval and semantic-cache data models.

Defines Pydantic v2 models for the two stores the service keeps in sync:

- :class:`DocumentChunk` lives in the document store and is created by the
  ingest pipeline.  It is never mutated; re-ingesting a document deletes
  its chunks and writes new ones.
- :class:`CacheEntry` lives in the semantic cache.  It refers to the
  chunks its answer was grounded on by id only (``source_chunk_ids``), so
  the cache never owns chunk data and a deleted chunk simply leaves a
  dangling id until the entry is invalidated or expires.

All models are frozen; new state is produced with ``model_copy(update=...)``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# DocumentChunk: one embedded slice of an ingested document.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A chunk of a source document together with its embedding.

    ``char_offset`` is the sum of the lengths of all preceding chunks of
    the same document, so offsets are deterministic no matter in which
    order the chunks were embedded.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier (UUID) for this chunk.")
    document_id: str = Field(description="Identifier of the parent document.")
    text: str = Field(description="The chunk's textual content.")
    embedding: list[float] = Field(
        default_factory=list,
        description="Embedding vector; length equals the configured dimension.",
    )
    chunk_index: int = Field(ge=0, description="Position of the chunk in its document.")
    char_offset: int = Field(ge=0, description="Cumulative character offset in the document.")
    ingested_at: datetime = Field(default_factory=_utc_now)


# ---------------------------------------------------------------------------
# CacheEntry: a previously generated answer keyed by its prompt vector.
# ---------------------------------------------------------------------------
class CacheEntry(BaseModel):
    """A cached answer with the ids of the chunks it was grounded on."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(description="Unique identifier (UUID) for this entry.")
    prompt: str
    answer: str
    embedding: list[float] = Field(default_factory=list)
    source_chunk_ids: list[str] = Field(
        default_factory=list,
        description="Weak references to the DocumentChunks used as context.",
    )
    created_at: datetime = Field(default_factory=_utc_now)
    expires_at: datetime

    @model_validator(mode="after")
    def _check_expiry_order(self) -> CacheEntry:
        if self.expires_at < self.created_at:
            raise ValueError("expires_at must not precede created_at")
        return self


# ---------------------------------------------------------------------------
# SimilarityResult: a scored match from either store.
# ---------------------------------------------------------------------------
class SimilarityResult(BaseModel, Generic[T]):
    """An item paired with its cosine similarity to a query vector.

    ``score`` is ``1 - cosine_distance`` and therefore lies in [-1, 1];
    higher means more similar.
    """

    model_config = ConfigDict(frozen=True)

    item: T
    score: float = Field(ge=-1.0, le=1.0)
