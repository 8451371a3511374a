"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, highest priority first:

  1. Environment variables, e.g. ``CACHE_SIMILARITY_THRESHOLD=0.9``
  2. A ``.env`` file in the working directory

Field names map to upper-cased environment variable names.  Defaults are
used when neither source sets a value.  Backend selectors
(``embedding_provider``, ``llm_provider``, ``document_store_backend``,
``cache_backend``) are resolved by the factories in ``src/main.py``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Answer cache service settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Semantic cache ===
    cache_similarity_threshold: float = Field(default=0.85, ge=-1.0, le=1.0)
    cache_ttl_hours: int = Field(default=24, gt=0)
    cache_backend: str = "memory"  # "memory" | "redis"
    redis_url: str = "redis://localhost:6379/0"
    redis_index_name: str = "idx:cache"
    redis_key_prefix: str = "cache:"

    # === Retrieval ===
    rag_top_k: int = Field(default=5, ge=1)
    retrieval_min_score: float = Field(default=0.75, ge=-1.0, le=1.0)
    vector_dimension: int = Field(default=1536, ge=1)
    document_store_backend: str = "memory"  # "memory" | "chromadb"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "answer_cache_documents"

    # === Chunking / ingestion ===
    chunking_strategy: str = "sentence"  # "sentence" | "fixed"
    chunk_size: int = Field(default=512, gt=0)
    chunk_overlap: int = Field(default=50, ge=0)
    ingest_max_concurrency: int = Field(default=5, ge=1)

    # === Background work ===
    ingest_queue_capacity: int = Field(default=100, ge=1)
    cache_queue_capacity: int = Field(default=100, ge=1)
    job_store_max_jobs: int = Field(default=1000, ge=1)

    # === Retry ===
    retry_max_retries: int = Field(default=3, ge=0)
    retry_base_delay_seconds: float = Field(default=2.0, ge=0.0)

    # === Request limits ===
    max_prompt_length: int = 10_000
    max_content_bytes: int = 10 * 1024 * 1024

    # === Embedding / LLM providers ===
    # Empty key = "not configured"; the factories refuse to build a
    # provider whose credentials are missing.
    embedding_provider: str = "openai"  # "openai" | "hash"
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = ""
    llm_provider: str = "anthropic"  # "anthropic" | "ollama"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 1000
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.1"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
