"""Text chunking strategies for document ingestion.

Two strategies implement :class:`~src.interfaces.chunking_strategy.IChunkingStrategy`:

1. **FixedSizeChunker** -- a character sliding window of ``chunk_size``
   advancing by ``chunk_size - overlap``.  When the overlap is at least
   as large as the window the step would be zero or negative, so exactly
   one chunk (the first window) is produced.

2. **SentenceAwareChunker** -- splits on sentence punctuation followed by
   whitespace and a capital letter, then packs whole sentences into
   chunks of roughly ``target_chunk_size`` characters.  When a chunk is
   closed its last ``overlap`` characters seed the next one, so a concept
   spanning a boundary is still captured in at least one chunk.

Sizes are measured in characters, not model tokens.
"""

from __future__ import annotations

import re

import structlog

from src.config.settings import Settings
from src.interfaces.chunking_strategy import IChunkingStrategy
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

# Whitespace after ., ! or ? and before an upper-case letter.
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")


class FixedSizeChunker(IChunkingStrategy):
    """Sliding character window with overlap."""

    def __init__(self, chunk_size: int = 512, overlap: int = 50) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0:
            raise ValueError("overlap must not be negative")
        self._chunk_size = chunk_size
        self._overlap = overlap

    def chunk(self, text: str) -> list[str]:
        if not text or not text.strip():
            return []

        step = self._chunk_size - self._overlap
        if step <= 0:
            return [text[: self._chunk_size]]

        chunks: list[str] = []
        for start in range(0, len(text), step):
            chunks.append(text[start : start + self._chunk_size])
        return chunks


class SentenceAwareChunker(IChunkingStrategy):
    """Pack whole sentences into chunks of about ``target_chunk_size`` characters."""

    def __init__(self, target_chunk_size: int = 512, overlap: int = 50) -> None:
        if target_chunk_size <= 0:
            raise ValueError("target_chunk_size must be positive")
        if overlap < 0:
            raise ValueError("overlap must not be negative")
        self._target_chunk_size = target_chunk_size
        self._overlap = overlap

    def chunk(self, text: str) -> list[str]:
        if not text or not text.strip():
            return []

        sentences = _SENTENCE_BOUNDARY.split(text)
        chunks: list[str] = []
        current = ""

        for sentence in sentences:
            if current and len(current) + len(sentence) > self._target_chunk_size:
                chunks.append(current.strip())
                tail = current[-self._overlap :] if self._overlap else ""
                current = f"{tail} {sentence}"
            else:
                current = f"{current} {sentence}" if current else sentence

        if current.strip():
            chunks.append(current.strip())

        return chunks


def build_chunker(settings: Settings) -> IChunkingStrategy:
    """Create the chunking strategy named by ``settings.chunking_strategy``."""
    strategy = settings.chunking_strategy.lower()
    if strategy == "sentence":
        chunker: IChunkingStrategy = SentenceAwareChunker(
            target_chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
        )
    elif strategy == "fixed":
        chunker = FixedSizeChunker(
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
        )
    else:
        raise ConfigurationError(message=f"Unknown chunking strategy: {settings.chunking_strategy!r}")

    logger.info(
        "chunker_selected",
        strategy=strategy,
        chunk_size=settings.chunk_size,
        overlap=settings.chunk_overlap,
    )
    return chunker
