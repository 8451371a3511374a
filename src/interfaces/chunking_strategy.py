"""Abstract base class for text chunking strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: FixedSizeChunker, SentenceAwareChunker
# Located in: src/services/ingestion/chunker.py
class IChunkingStrategy(ABC):
    """Split document text into an ordered list of chunk strings."""

    @abstractmethod
    def chunk(self, text: str) -> list[str]:
        """Return chunks in document order; ``[]`` for blank input."""
