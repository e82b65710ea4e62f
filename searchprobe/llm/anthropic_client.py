"""
Anthropic LLM Client.
Implements LLMProvider for Claude vision models.
"""

import base64
import json
from typing import Any

from anthropic import AsyncAnthropic

from .provider import LLMProvider, LLMMessage, LLMResponse, sniff_media_type


class AnthropicClient(LLMProvider):
    """
    Anthropic Claude client implementing LLMProvider interface.
    """

    def __init__(self, api_key: str, model: str = "claude-3-5-sonnet-20241022"):
        """
        Initialize Anthropic client.

        Args:
            api_key: Anthropic API key
            model: Model name
        """
        if not api_key:
            raise ValueError("Anthropic API key not configured")

        self.api_key = api_key
        self._model = model
        self.client = AsyncAnthropic(api_key=self.api_key)

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
        Invoke Anthropic API.

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
        # Build messages list (Anthropic doesn't include system in messages)
        api_messages: list[dict[str, Any]] = []

        if isinstance(messages, str):
            api_messages.append({
                "role": "user",
                "content": messages
            })
        else:
            for msg in messages:
                if msg.role == "system":
                    # Prepend to system prompt
                    system_prompt = f"{system_prompt or ''}\n{msg.content}".strip()
                else:
                    api_messages.append({
                        "role": msg.role,
                        "content": msg.content
                    })

        if images:
            self._attach_images(api_messages, images)

        # Build request kwargs
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": api_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        if system_prompt:
            kwargs["system"] = system_prompt

        if tools:
            kwargs["tools"] = self._format_tools(tools)
            if tool_choice:
                kwargs["tool_choice"] = {"type": tool_choice}

        # Make API call
        response = await self.client.messages.create(**kwargs)

        # Extract response content
        content = ""
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append({
                    "id": block.id,
                    "type": "function",
                    "function": {
                        "name": block.name,
                        "arguments": json.dumps(block.input)
                    }
                })

        return LLMResponse(
            content=content,
            model=response.model,
            usage={
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            },
            tool_calls=tool_calls if tool_calls else None
        )

    def _attach_images(self, api_messages: list[dict[str, Any]], images: list[bytes]) -> None:
        """Turn the last user message into image + text content blocks."""
        for msg in reversed(api_messages):
            if msg["role"] != "user":
                continue
            blocks: list[dict[str, Any]] = [
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": sniff_media_type(image),
                        "data": base64.b64encode(image).decode(),
                    },
                }
                for image in images
            ]
            blocks.append({"type": "text", "text": msg["content"]})
            msg["content"] = blocks
            return

    def _format_tools(self, tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Format tools for Anthropic API.

        Args:
            tools: Tool definitions

        Returns:
            Anthropic-formatted tools
        """
        formatted = []
        for tool in tools:
            formatted.append({
                "name": tool.get("name"),
                "description": tool.get("description", ""),
                "input_schema": tool.get("parameters", {"type": "object", "properties": {}})
            })
        return formatted
