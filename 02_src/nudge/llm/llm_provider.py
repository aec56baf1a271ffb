"""LLM Provider implementation using Anthropic Claude API."""

from typing import Protocol

import anthropic

from ..config import AIConfig


class ILLMProvider(Protocol):
    """Abstraction for LLM access."""

    async def complete(
        self,
        messages: list[dict],  # [{"role": "user", "content": "..."}]
        system: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate completion."""
        ...


class LLMProvider:
    """Anthropic Claude API provider."""

    def __init__(self, config: AIConfig):
        if not config.api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")

        self._config = config
        self._client = anthropic.AsyncAnthropic(api_key=config.api_key)

    async def complete(
        self,
        messages: list[dict],
        system: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate completion using Claude API."""
        kwargs = {
            "model": self._config.model,
            "messages": messages,
            "max_tokens": max_tokens or self._config.max_tokens,
            "temperature": self._config.get_temperature(),
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as e:
            raise RuntimeError(f"LLM API error: {e}") from e

        return "".join(block.text for block in response.content if hasattr(block, "text"))
