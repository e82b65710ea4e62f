"""LLM module - Unified interface for OpenAI and Anthropic vision providers."""

from .provider import LLMProvider, LLMMessage, LLMResponse, get_llm_provider

__all__ = [
    "LLMProvider",
    "LLMMessage",
    "LLMResponse",
    "get_llm_provider",
]
