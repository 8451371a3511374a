"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports real OpenAI and OpenAI-compatible providers (TogetherAI,
Fireworks, a local gateway) via ``openai_base_url`` and
``openai_embedding_model``.

SDK errors are sorted into the service taxonomy: timeouts, connection
drops, 429s and 5xx become :class:`TransientExternalError` and are retried
by the injected :class:`RetryPolicy`; every other API error is a
:class:`ProviderError`.  An empty vector is a
:class:`MalformedResponseError` and is never retried.
"""

from __future__ import annotations

from collections.abc import Callable

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import MalformedResponseError, ProviderError, TransientExternalError
from src.utils.retry import RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
}

_TRANSIENT_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  A fresh
    :class:`RetryPolicy` is built for every call via *retry_factory*, so
    concurrent calls never share a retry budget.
    """

    def __init__(
        self,
        settings: Settings,
        retry_factory: Callable[[], RetryPolicy] | None = None,
    ) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {"api_key": self._api_key}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, settings.vector_dimension)
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )
        self._retry_factory = retry_factory or (
            lambda: RetryPolicy(
                max_retries=settings.retry_max_retries,
                base_delay=settings.retry_base_delay_seconds,
            )
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def get_embedding(self, text: str) -> list[float]:
        """Embed *text*, retrying transient failures."""
        embedding = await self._retry_factory().run(
            lambda: self._request_embedding(text),
            operation_name=f"{self._provider_label}.get_embedding",
        )
        if not embedding:
            raise MalformedResponseError(
                message="Embedding response contained an empty vector",
                provider_name=self.get_provider_name(),
            )
        return embedding

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _request_embedding(self, text: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(input=[text], model=self._model)
        except _TRANSIENT_ERRORS as exc:
            raise TransientExternalError(
                message=f"{self._provider_label} transient error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug(
            "openai_embedding",
            model=self._model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        if not response.data:
            return []
        return list(response.data[0].embedding)
