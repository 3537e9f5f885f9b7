"""
brain/openai_client.py — OpenAI Reasoning-Oracle Client

Works with the official OpenAI endpoint and any OpenAI-compatible one
(vLLM, LiteLLM proxy, DeepSeek, Qwen, ...). Handles tool definitions, the
tool-choice policy, token counting and error normalisation.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

import openai
from openai import AsyncOpenAI

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
    Role,
    TokenUsage,
    ToolCall,
    ToolChoice,
)
from agentloop.observability.logger import get_logger

log = get_logger(__name__)


class OpenAIClient(BaseLLMClient):
    """Chat-completions client built on the official async SDK."""

    def __init__(
        self,
        config: LLMConfig,
        api_key: str,
        base_url: Optional[str] = None,     # None = official OpenAI endpoint
        provider: str = "openai",
    ):
        super().__init__(config=config, api_key=api_key, base_url=base_url)
        self.provider = provider
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    # ── Public API ────────────────────────────────────────────────────────────

    async def ask(
        self,
        messages: Sequence[Message],
        *,
        system_messages: Optional[Sequence[Message]] = None,
        tools: Optional[list[dict[str, Any]]] = None,
        tool_choice: Optional[ToolChoice] = None,
    ) -> LLMResponse:
        full = list(system_messages or ()) + list(messages)
        oai_messages = self._to_provider_messages(full)

        log.debug(
            "openai.ask.start",
            model=self.config.model,
            message_count=len(oai_messages),
            tools=len(tools or ()),
            tool_choice=tool_choice.value if tool_choice else None,
        )

        try:
            response = await self._client.chat.completions.create(
                model=self.config.model,
                messages=oai_messages,
                tools=tools if tools else openai.NOT_GIVEN,
                tool_choice=self._to_provider_tool_choice(tool_choice, tools),
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                timeout=self.config.timeout_seconds,
            )
        except openai.AuthenticationError as e:
            raise LLMConnectionError(str(e), provider=self.provider, status_code=401) from e
        except openai.RateLimitError as e:
            raise LLMRateLimitError(str(e), provider=self.provider) from e
        except openai.BadRequestError as e:
            if "context" in str(e).lower() or "too long" in str(e).lower():
                raise LLMContextError(str(e), provider=self.provider) from e
            raise LLMInvalidRequestError(str(e), provider=self.provider) from e
        except openai.APIConnectionError as e:
            raise LLMConnectionError(str(e), provider=self.provider) from e
        except openai.APIError as e:
            raise LLMError(str(e), provider=self.provider, status_code=getattr(e, "status_code", None)) from e

        result = self._from_provider_response(response)
        log.debug(
            "openai.ask.complete",
            model=result.model,
            input_tokens=result.usage.input_tokens,
            output_tokens=result.usage.output_tokens,
            finish_reason=result.finish_reason.value,
            tool_calls=len(result.tool_calls),
        )
        return result

    async def health_check(self) -> bool:
        try:
            await self._client.models.list()
            return True
        except openai.APIError as e:
            log.warning("openai.health_check.failed", error=str(e), error_type=type(e).__name__)
            return False

    # ── Private helpers ───────────────────────────────────────────────────────

    @staticmethod
    def _to_provider_tool_choice(
        choice: Optional[ToolChoice],
        tools: Optional[list[dict[str, Any]]],
    ) -> Any:
        if not tools or choice is None:
            return openai.NOT_GIVEN
        return choice.value

    @staticmethod
    def _to_provider_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
        """Translate internal Message list → OpenAI chat message format."""
        result: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role == Role.ASSISTANT:
                entry: dict[str, Any] = {"role": "assistant", "content": msg.content or None}
                if msg.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {"name": tc.name, "arguments": tc.arguments},
                        }
                        for tc in msg.tool_calls
                    ]
                result.append(entry)

            elif msg.role == Role.TOOL:
                result.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id or "",
                    "content": msg.content,
                })

            else:
                result.append({"role": msg.role.value, "content": msg.content})

        return result

    @staticmethod
    def _from_provider_response(response: Any) -> LLMResponse:
        """Translate OpenAI ChatCompletion → internal LLMResponse."""
        if not response.choices:
            raise LLMError("empty response: no choices returned", provider="openai")
        choice = response.choices[0]
        msg = choice.message

        finish_map = {
            "stop": FinishReason.STOP,
            "tool_calls": FinishReason.TOOL_CALLS,
            "length": FinishReason.LENGTH,
        }
        finish_reason = finish_map.get(choice.finish_reason or "stop", FinishReason.STOP)

        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "{}")
            for tc in (msg.tool_calls or [])
        ]

        usage = TokenUsage(
            input_tokens=response.usage.prompt_tokens if response.usage else 0,
            output_tokens=response.usage.completion_tokens if response.usage else 0,
        )

        return LLMResponse(
            content=msg.content or "",
            tool_calls=tool_calls,
            finish_reason=finish_reason,
            usage=usage,
            model=response.model or "",
        )
