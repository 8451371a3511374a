"""Abstract base class for text-embedding service providers.

Embeddings are produced for two callers: the chat orchestrator embeds the
incoming prompt to probe the semantic cache, and the ingest pipeline
embeds every chunk before storing it.  Both stores compare vectors by
cosine similarity, so every provider must emit vectors of one fixed
dimension.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider: text-embedding-3-small (requires API key)
#   HashEmbeddingProvider: deterministic token hashing, offline
# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services."""

    @abstractmethod
    async def get_embedding(self, text: str) -> list[float]:
        """Generate an embedding vector for *text*.

        Returns
        -------
        list[float]
            The embedding vector with length equal to :meth:`get_dimension`.

        Raises
        ------
        src.utils.errors.TransientExternalError
            If the service kept failing after the retry policy gave up.
        src.utils.errors.MalformedResponseError
            If the service returned an empty vector.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
