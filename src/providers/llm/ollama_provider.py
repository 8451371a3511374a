"""Ollama LLM provider adapter.

Talks to a local Ollama server through its OpenAI-compatible ``/v1``
endpoint using the ``openai`` client, so the service can answer questions
fully offline.  ``httpx`` is used only by :meth:`OllamaLLMProvider.ping`
to hit Ollama's native ``/api/tags`` endpoint.

Setup: install Ollama, ``ollama pull llama3.1``, then set
``LLM_PROVIDER=ollama`` and ``OLLAMA_BASE_URL=http://localhost:11434``.
"""

from __future__ import annotations

from collections.abc import Callable

import httpx
import openai
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import (
    GROUNDED_SYSTEM_PROMPT,
    ILLMProvider,
    build_grounded_user_prompt,
)
from src.models.rag import DocumentChunk
from src.utils.errors import MalformedResponseError, ProviderError, TransientExternalError
from src.utils.retry import RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

_TRANSIENT_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server."""

    def __init__(
        self,
        settings: Settings,
        retry_factory: Callable[[], RetryPolicy] | None = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url
        # Ollama ignores the key but the SDK requires a non-empty value.
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url.rstrip('/')}/v1",
            api_key="ollama",
        )
        self._model = settings.ollama_model
        self._max_tokens = settings.llm_max_tokens
        self._retry_factory = retry_factory or (
            lambda: RetryPolicy(
                max_retries=settings.retry_max_retries,
                base_delay=settings.retry_base_delay_seconds,
            )
        )

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def generate_response(
        self,
        prompt: str,
        context_chunks: list[DocumentChunk],
    ) -> str:
        user_prompt = build_grounded_user_prompt(prompt, context_chunks)
        return await self._retry_factory().run(
            lambda: self._complete(user_prompt),
            operation_name="ollama.generate_response",
        )

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)

    def get_provider_name(self) -> str:
        return "ollama"

    async def ping(self) -> bool:
        """Return ``True`` if the Ollama server answers ``/api/tags``."""
        if not self.is_available():
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._base_url.rstrip('/')}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _complete(self, user_prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": GROUNDED_SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=self._max_tokens,
            )
        except _TRANSIENT_ERRORS as exc:
            raise TransientExternalError(
                message=f"Ollama transient error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(
                message=f"Ollama API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise MalformedResponseError(
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info("ollama_completion", model=self._model)
        return content
