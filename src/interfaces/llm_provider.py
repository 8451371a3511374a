"""Abstract base class for LLM service providers.

The chat orchestrator calls :meth:`ILLMProvider.generate_response` on every
cache miss, handing over the user's prompt plus the chunks the retriever
selected.  Implementations build the grounded prompt themselves so each
backend can place the instructions where its API expects them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.rag import DocumentChunk

# Shared instruction used by every backend.
GROUNDED_SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer the user's question using ONLY the "
    "context provided. If the context does not contain enough information, "
    "say so. Do not hallucinate."
)


def build_grounded_user_prompt(prompt: str, context_chunks: list[DocumentChunk]) -> str:
    """Join chunk texts into a ``Context:`` block followed by the question."""
    context = "\n\n".join(chunk.text for chunk in context_chunks)
    return f"Context:\n{context}\n\nQuestion: {prompt}"


# Concrete implementations: AnthropicLLMProvider, OllamaLLMProvider
# Located in: src/providers/llm/
class ILLMProvider(ABC):
    """Contract for answer-generation services."""

    @abstractmethod
    async def generate_response(
        self,
        prompt: str,
        context_chunks: list[DocumentChunk],
    ) -> str:
        """Generate an answer to *prompt* grounded on *context_chunks*.

        Parameters
        ----------
        prompt:
            The user's question.
        context_chunks:
            Retrieved chunks, most relevant first.  May be empty, in which
            case the model is expected to say it lacks information.

        Returns
        -------
        str
            The model's answer text.

        Raises
        ------
        src.utils.errors.TransientExternalError
            If the API kept failing after retries.
        src.utils.errors.MalformedResponseError
            If the API returned no text.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable."""
