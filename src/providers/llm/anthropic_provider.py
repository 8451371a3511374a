"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Key differences from the OpenAI-style adapter:
    - The system prompt is a top-level ``system`` parameter, not a message
    - Response content is a list of blocks, so text blocks are filtered
      and joined
"""

from __future__ import annotations

from collections.abc import Callable

import anthropic
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
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Claude Messages API."""

    def __init__(
        self,
        settings: Settings,
        retry_factory: Callable[[], RetryPolicy] | None = None,
    ) -> None:
        self._settings = settings
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        self._model = settings.anthropic_model
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
            operation_name="anthropic.generate_response",
        )

    def is_available(self) -> bool:
        """Return ``True`` if an Anthropic API key is configured."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "anthropic"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _complete(self, user_prompt: str) -> str:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=GROUNDED_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except _TRANSIENT_ERRORS as exc:
            raise TransientExternalError(
                message=f"Anthropic transient error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except anthropic.APIError as exc:
            raise ProviderError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise MalformedResponseError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "anthropic_completion",
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return "\n".join(text_blocks)
