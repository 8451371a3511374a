"""LLM provider adapters.

Two concrete implementations of ILLMProvider (src/interfaces/llm_provider.py):
    - AnthropicLLMProvider — Claude via the Messages API
    - OllamaLLMProvider    — local models via Ollama's OpenAI-compatible API

``LLM_PROVIDER`` selects one at startup in ``src/main.py``.
"""

from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider

__all__ = ["AnthropicLLMProvider", "OllamaLLMProvider"]
