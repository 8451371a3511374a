"""Document store implementations.

    - ChromaDBDocumentStore — persistent chunks on disk at CHROMADB_PERSIST_DIR
    - InMemoryDocumentStore — process-local, for development and tests

``DOCUMENT_STORE_BACKEND`` selects one in ``src/main.py``.  The ChromaDB
adapter is imported lazily there so the in-memory backend runs without
loading chromadb.
"""

from src.providers.document_store.memory_document_store import InMemoryDocumentStore

__all__ = ["InMemoryDocumentStore"]
