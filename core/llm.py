"""
LLM Provider abstraction supporting Claude (Anthropic) and OpenAI.

Both clients expose the OpenAI-style `client.chat.completions.create(...)`
call so agents do not care which provider is configured.

Usage:
    from core.llm import create_llm_client, LLMProvider

    client = create_llm_client(LLMProvider.ANTHROPIC, api_key="...")
"""

import os
from enum import Enum
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from .observability import get_logger

logger = get_logger(__name__)


class LLMProvider(Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


DEFAULT_MODELS = {
    LLMProvider.ANTHROPIC: "claude-sonnet-4-20250514",
    LLMProvider.OPENAI: "gpt-4o-mini",
}


class AnthropicLLMClient:
    """Wrapper for Anthropic's Claude API with an OpenAI-compatible interface."""

    def __init__(self, api_key: str, default_model: str, base_url: Optional[str] = None):
        from anthropic import AsyncAnthropic

        if base_url:
            self.client = AsyncAnthropic(api_key=api_key, base_url=base_url)
        else:
            self.client = AsyncAnthropic(api_key=api_key)
        logger.debug("anthropic_client_created", base_url=base_url or "default", model=default_model)

        self.default_model = default_model
        self.chat = self  # For compatibility with OpenAI interface
        self.completions = self

    async def create(
        self,
        model: Optional[str] = None,
        messages: Optional[List[Dict[str, str]]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        **kwargs,
    ) -> Any:
        """Create a chat completion using Claude."""
        system_parts = []
        chat_messages = []
        for msg in messages or []:
            if msg.get("role") == "system":
                system_parts.append(msg.get("content", ""))
            else:
                chat_messages.append({"role": msg.get("role", "user"), "content": msg.get("content", "")})

        request_kwargs: Dict[str, Any] = {
            "model": model or self.default_model,
            "max_tokens": max_tokens,
            "messages": chat_messages,
            "temperature": temperature,
        }
        if system_parts:
            request_kwargs["system"] = "\n".join(system_parts).strip()

        response = await self.client.messages.create(**request_kwargs)
        return self._convert_response(response)

    def _convert_response(self, response: Any) -> Any:
        """Convert an Anthropic response to the OpenAI-compatible shape."""
        text = "".join(block.text for block in response.content if hasattr(block, "text"))
        message = SimpleNamespace(content=text, role="assistant", tool_calls=None)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=message, finish_reason=response.stop_reason)],
            model=response.model,
        )


class OpenAILLMClient:
    """Wrapper for OpenAI API."""

    def __init__(self, api_key: str, default_model: str):
        from openai import AsyncOpenAI

        self.client = AsyncOpenAI(api_key=api_key)
        self.default_model = default_model
        self.chat = self.client.chat
        self.completions = self.client.chat.completions


def detect_provider() -> LLMProvider:
    """Pick a provider from the API keys present in the environment."""
    if os.getenv("ANTHROPIC_API_KEY"):
        return LLMProvider.ANTHROPIC
    if os.getenv("OPENAI_API_KEY"):
        return LLMProvider.OPENAI
    raise ValueError("No API key found. Set ANTHROPIC_API_KEY or OPENAI_API_KEY")


def create_llm_client(
    provider: Optional[LLMProvider] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
) -> Any:
    """
    Create an LLM client based on provider.

    Args:
        provider: LLM provider (anthropic or openai). Auto-detects if not specified.
        api_key: API key. Uses environment variable if not specified.
        model: Model to use. Uses provider default if not specified.

    Returns:
        LLM client with OpenAI-compatible interface
    """
    provider = provider or detect_provider()

    if provider == LLMProvider.ANTHROPIC:
        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY is required")
        return AnthropicLLMClient(
            api_key=api_key,
            default_model=model or get_default_model(provider),
            base_url=os.getenv("ANTHROPIC_BASE_URL"),
        )

    if provider == LLMProvider.OPENAI:
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY is required")
        return OpenAILLMClient(api_key=api_key, default_model=model or get_default_model(provider))

    raise ValueError(f"Unknown provider: {provider}")


def get_default_model(provider: LLMProvider) -> str:
    """Get the default model for a provider."""
    return DEFAULT_MODELS.get(provider, DEFAULT_MODELS[LLMProvider.ANTHROPIC])
