"""LLM Provider implementation using Anthropic Claude API."""

import os
from typing import Protocol

import anthropic

DEFAULT_MODEL = "claude-sonnet-4-5"

REFUSAL_STOP_REASON = "refusal"


class LLMError(Exception):
    """The model could not produce a reply.

    `error_type` follows the game server error body: "rate_limit",
    "moderation" or None.
    """

    def __init__(self, message: str, error_type: str | None = None):
        super().__init__(message)
        self.message = message
        self.error_type = error_type


class ILLMProvider(Protocol):
    """Abstraction for LLM access."""

    async def complete(
        self,
        messages: list[dict],  # [{"role": "user", "content": "..."}]
        system: str | None = None,
        max_tokens: int = 1024,
    ) -> str:
        """Generate completion. Raises LLMError."""
        ...


class LLMProvider:
    """Anthropic Claude API provider."""

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")

        self._model = model or os.getenv("ANTHROPIC_MODEL") or DEFAULT_MODEL
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: list[dict],
        system: str | None = None,
        max_tokens: int = 1024,
    ) -> str:
        """Generate completion using Claude API."""
        kwargs = {}
        if system:
            kwargs["system"] = system

        try:
            response = await self._client.messages.create(
                model=self._model,
                messages=messages,
                max_tokens=max_tokens,
                **kwargs,
            )
        except anthropic.RateLimitError as e:
            raise LLMError(
                "The game master is busy, try again shortly.", "rate_limit"
            ) from e
        except anthropic.APIError as e:
            raise LLMError(f"LLM API error: {e}") from e

        if response.stop_reason == REFUSAL_STOP_REASON:
            raise LLMError(
                "The game master refused to continue this scene.", "moderation"
            )

        text = "".join(
            block.text
            for block in response.content
            if getattr(block, "type", None) == "text"
        )
        if not text:
            raise LLMError("The game master returned an empty reply.")
        return text
