"""
Unified LLM Provider Interface.
Abstracts OpenAI and Anthropic vision models behind a common interface.
"""

from abc import ABC, abstractmethod
from typing import Any, Literal
from pydantic import BaseModel

from ..core.config import Settings


class LLMMessage(BaseModel):
    """Message in LLM conversation."""
    role: Literal["system", "user", "assistant"]
    content: str
    name: str | None = None


class LLMResponse(BaseModel):
    """Response from LLM."""
    content: str
    model: str
    usage: dict[str, int] | None = None
    tool_calls: list[dict[str, Any]] | None = None

    @property
    def total_tokens(self) -> int | None:
        if not self.usage:
            return None
        return self.usage.get("total_tokens")


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.
    Implemented by OpenAI and Anthropic clients.
    """

    @abstractmethod
    async def invoke(
        self,
        messages: list[LLMMessage] | str,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | None = None,
        images: list[bytes] | None = None,
    ) -> LLMResponse:
        """
        Invoke the LLM with messages.

        Args:
            messages: List of messages or a single user message string
            system_prompt: Optional system prompt
            temperature: Sampling temperature
            max_tokens: Maximum tokens in response
            tools: Optional list of tool definitions
            tool_choice: Optional tool choice setting
            images: Optional JPEG/PNG screenshots attached to the last user turn

        Returns:
            LLM response
        """
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name being used."""
        pass


def sniff_media_type(image: bytes) -> str:
    """Guess the media type of screenshot bytes."""
    if image[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    return "image/jpeg"


def get_llm_provider(settings: Settings, provider: str | None = None) -> LLMProvider:
    """
    Get LLM provider instance based on configuration.

    Args:
        settings: Application settings
        provider: Provider name ("openai" or "anthropic"), defaults to config

    Returns:
        LLMProvider instance
    """
    provider = provider or settings.llm_provider

    if provider == "openai":
        from .openai_client import OpenAIClient
        return OpenAIClient(api_key=settings.openai_api_key, model=settings.openai_model)
    elif provider == "anthropic":
        from .anthropic_client import AnthropicClient
        return AnthropicClient(api_key=settings.anthropic_api_key, model=settings.anthropic_model)
    else:
        raise ValueError(f"Unknown LLM provider: {provider}")
