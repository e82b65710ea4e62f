"""
OpenAI LLM Client.
Implements LLMProvider for OpenAI GPT vision models.
"""

import base64
from typing import Any

from openai import AsyncOpenAI

from .provider import LLMProvider, LLMMessage, LLMResponse, sniff_media_type


class OpenAIClient(LLMProvider):
    """
    OpenAI GPT client implementing LLMProvider interface.
    """

    def __init__(self, api_key: str, model: str = "gpt-4o"):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Model name
        """
        if not api_key:
            raise ValueError("OpenAI API key not configured")

        self.api_key = api_key
        self._model = model
        self.client = AsyncOpenAI(api_key=self.api_key)

    @property
    def model_name(self) -> str:
        return self._model

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
        Invoke OpenAI API.

        Args:
            messages: Messages or single user message
            system_prompt: Optional system prompt
            temperature: Sampling temperature
            max_tokens: Maximum tokens
            tools: Optional tool definitions
            tool_choice: Optional tool choice
            images: Optional screenshots for the last user message

        Returns:
            LLM response
        """
        # Build messages list
        api_messages: list[dict[str, Any]] = []

        if system_prompt:
            api_messages.append({
                "role": "system",
                "content": system_prompt
            })

        if isinstance(messages, str):
            api_messages.append({
                "role": "user",
                "content": messages
            })
        else:
            for msg in messages:
                api_messages.append({
                    "role": msg.role,
                    "content": msg.content,
                    **({"name": msg.name} if msg.name else {})
                })

        if images:
            self._attach_images(api_messages, images)

        # Build request kwargs
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": api_messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if tools:
            kwargs["tools"] = self._format_tools(tools)
            if tool_choice:
                kwargs["tool_choice"] = tool_choice

        # Make API call
        response = await self.client.chat.completions.create(**kwargs)

        # Extract response
        choice = response.choices[0]
        content = choice.message.content or ""

        # Extract tool calls if present
        tool_calls = None
        if choice.message.tool_calls:
            tool_calls = [
                {
                    "id": tc.id,
                    "type": tc.type,
                    "function": {
                        "name": tc.function.name,
                        "arguments": tc.function.arguments
                    }
                }
                for tc in choice.message.tool_calls
            ]

        return LLMResponse(
            content=content,
            model=response.model,
            usage={
                "prompt_tokens": response.usage.prompt_tokens if response.usage else 0,
                "completion_tokens": response.usage.completion_tokens if response.usage else 0,
                "total_tokens": response.usage.total_tokens if response.usage else 0,
            },
            tool_calls=tool_calls
        )

    def _attach_images(self, api_messages: list[dict[str, Any]], images: list[bytes]) -> None:
        """Turn the last user message into text + image_url parts."""
        for msg in reversed(api_messages):
            if msg["role"] != "user":
                continue
            parts: list[dict[str, Any]] = [{"type": "text", "text": msg["content"]}]
            for image in images:
                encoded = base64.b64encode(image).decode()
                parts.append({
                    "type": "image_url",
                    "image_url": {
                        "url": f"data:{sniff_media_type(image)};base64,{encoded}",
                        "detail": "high",
                    },
                })
            msg["content"] = parts
            return

    def _format_tools(self, tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Format tools for OpenAI API.

        Args:
            tools: Tool definitions

        Returns:
            OpenAI-formatted tools
        """
        formatted = []
        for tool in tools:
            formatted.append({
                "type": "function",
                "function": {
                    "name": tool.get("name"),
                    "description": tool.get("description", ""),
                    "parameters": tool.get("parameters", {"type": "object", "properties": {}})
                }
            })
        return formatted
