"""
brain/types.py — agentloop Conversation Data Models

Shared types used by the reasoning-oracle clients, the message log and the
agents. Provider clients map their native response shapes into these.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"           # tool result fed back to the oracle


class Provider(str, Enum):
    OPENAI = "openai"
    OPENAI_COMPATIBLE = "openai_compatible"


class FinishReason(str, Enum):
    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    ERROR = "error"


class ToolChoice(str, Enum):
    """How strongly the oracle is pushed towards calling a tool."""
    NONE = "none"
    AUTO = "auto"
    REQUIRED = "required"


# ─────────────────────────────────────────────────────────────────────────────
# Tool calling types
# ─────────────────────────────────────────────────────────────────────────────


class ToolCall(BaseModel):
    """
    A single tool invocation requested by the oracle.

    `arguments` keeps the serialized JSON object exactly as emitted; it is
    decoded by whoever executes the call so malformed arguments surface as a
    per-invocation error instead of breaking the reply.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique ID for this tool call (from the oracle)")
    name: str = Field(..., description="Tool/function name to call")
    arguments: str = Field(default="{}", description="Serialized JSON arguments")

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the argument object. Raises ValueError if it is not a JSON object."""
        if not self.arguments.strip():
            return {}
        data = json.loads(self.arguments)
        if not isinstance(data, dict):
            raise ValueError(f"arguments must be a JSON object, got {type(data).__name__}")
        return data


# ─────────────────────────────────────────────────────────────────────────────
# Message types
# ─────────────────────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """
    A single conversation turn. Immutable once constructed.

    tool_calls is only populated on assistant messages that request actions;
    tool_call_id only on tool messages, pointing at the invocation they answer.
    """
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_call_id: Optional[str] = None
    tool_calls: tuple[ToolCall, ...] = ()
    name: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str = "", tool_calls: Optional[list[ToolCall]] = None) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls or ()))

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str, name: Optional[str] = None) -> "Message":
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id, name=name)

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


# ─────────────────────────────────────────────────────────────────────────────
# LLM config
# ─────────────────────────────────────────────────────────────────────────────


class LLMConfig(BaseModel):
    """Per-request sampling configuration."""
    model: str
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout_seconds: float = 60.0


# ─────────────────────────────────────────────────────────────────────────────
# LLM response
# ─────────────────────────────────────────────────────────────────────────────


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class LLMResponse(BaseModel):
    """Normalised reply from the reasoning oracle."""
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    finish_reason: FinishReason = FinishReason.STOP
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str = ""

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0
