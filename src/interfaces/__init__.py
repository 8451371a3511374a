"""Public interface definitions for every external collaborator.

Business logic (chat orchestrator, ingest pipeline, retriever, re-ingest
cascade) talks only to these abstract base classes.  Concrete adapters
live in ``src/providers/`` and are selected in ``src/main.py`` from
settings, so unit tests can inject mocks or the in-memory variants.

CONCRETE PROVIDER MAP:
    Interface            →  Concrete implementations
    ─────────────────────────────────────────────────────────────
    IEmbeddingProvider   →  OpenAIEmbeddingProvider, HashEmbeddingProvider
    ILLMProvider         →  AnthropicLLMProvider, OllamaLLMProvider
    IDocumentStore       →  ChromaDBDocumentStore, InMemoryDocumentStore
    ISemanticCache       →  RedisSemanticCache, InMemorySemanticCache
    IChunkingStrategy    →  FixedSizeChunker, SentenceAwareChunker
"""

from src.interfaces.chunking_strategy import IChunkingStrategy
from src.interfaces.document_store import IDocumentStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.semantic_cache import ISemanticCache

__all__ = [
    "IChunkingStrategy",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "ISemanticCache",
]
