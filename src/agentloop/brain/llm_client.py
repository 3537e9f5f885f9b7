"""
brain/llm_client.py — Abstract Reasoning-Oracle Client

Every provider implementation subclasses BaseLLMClient and implements ask().
The agent core never retries a failed call; errors surface as LLMError
subclasses and become the failing step's error.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from agentloop.brain.types import LLMConfig, LLMResponse, Message, ToolChoice


class BaseLLMClient(ABC):
    """
    Abstract base for reasoning-oracle clients.

    Subclasses must implement:
      - ask()          -> send the conversation, return a normalised LLMResponse
      - health_check() -> verify connectivity to the provider
    """

    def __init__(self, config: LLMConfig, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.config = config
        self.api_key = api_key
        self.base_url = base_url

    @abstractmethod
    async def ask(
        self,
        messages: Sequence[Message],
        *,
        system_messages: Optional[Sequence[Message]] = None,
        tools: Optional[list[dict[str, Any]]] = None,
        tool_choice: Optional[ToolChoice] = None,
    ) -> LLMResponse:
        """
        Send `system_messages + messages` with the given tool definitions.

        `tools` uses the function-definition shape produced by
        ToolRegistry.definitions(). `tool_choice` None lets the provider
        default apply (auto when tools are given).
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the provider is reachable and the API key is valid."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} model={self.config.model}>"


# ─────────────────────────────────────────────────────────────────────────────
# Exceptions
# ─────────────────────────────────────────────────────────────────────────────


class LLMError(Exception):
    """Base exception for all oracle client errors."""
    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class LLMConnectionError(LLMError):
    """Provider unreachable or authentication failed."""


class LLMRateLimitError(LLMError):
    """Rate limit hit."""
    def __init__(self, message: str, provider: str = "", retry_after: Optional[float] = None):
        super().__init__(message, provider)
        self.retry_after = retry_after


class LLMContextError(LLMError):
    """Input exceeds model context window."""


class LLMInvalidRequestError(LLMError):
    """Bad request — invalid parameters or unsupported feature."""
