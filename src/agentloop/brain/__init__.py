"""
brain/__init__.py — agentloop Reasoning Oracle
"""

from __future__ import annotations

from typing import Optional

from agentloop.brain.llm_client import (
    BaseLLMClient,
    LLMConnectionError,
    LLMContextError,
    LLMError,
    LLMInvalidRequestError,
    LLMRateLimitError,
)
from agentloop.brain.types import (
    FinishReason,
    LLMConfig,
    LLMResponse,
    Message,
    Provider,
    Role,
    TokenUsage,
    ToolCall,
    ToolChoice,
)

__all__ = [
    "LLMClientFactory",
    "BaseLLMClient",
    "LLMError",
    "LLMConnectionError",
    "LLMRateLimitError",
    "LLMContextError",
    "LLMInvalidRequestError",
    "Message",
    "LLMConfig",
    "LLMResponse",
    "ToolCall",
    "ToolChoice",
    "TokenUsage",
    "Role",
    "Provider",
    "FinishReason",
]


class LLMClientFactory:

    @staticmethod
    def create(
        provider: str,
        config: LLMConfig,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> BaseLLMClient:

        provider = provider.lower().strip()

        if provider == Provider.OPENAI.value:
            if not api_key:
                raise LLMConnectionError("OPENAI_API_KEY is required", provider=provider)
            from agentloop.brain.openai_client import OpenAIClient
            return OpenAIClient(config=config, api_key=api_key, base_url=base_url, provider=provider)

        elif provider == Provider.OPENAI_COMPATIBLE.value:
            if not base_url:
                raise LLMConnectionError("llm.base_url is required for openai_compatible", provider=provider)
            from agentloop.brain.openai_client import OpenAIClient
            # local servers usually accept any key
            return OpenAIClient(config=config, api_key=api_key or "EMPTY", base_url=base_url, provider=provider)

        else:
            raise ValueError(
                f"Unknown LLM provider: '{provider}'. "
                f"Valid options: {', '.join(p.value for p in Provider)}"
            )

    @staticmethod
    def from_settings(settings) -> BaseLLMClient:
        """Create the oracle client described by settings.llm and the API key secrets."""
        config = LLMConfig(
            model=settings.llm.model,
            temperature=settings.llm.temperature,
            max_tokens=settings.llm.max_tokens,
            timeout_seconds=settings.llm.timeout_seconds,
        )
        return LLMClientFactory.create(
            provider=settings.llm.provider,
            config=config,
            api_key=settings.openai_api_key,
            base_url=settings.llm_base_url,
        )
