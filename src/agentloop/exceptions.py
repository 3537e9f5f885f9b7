"""
exceptions.py — agentloop Unified Error Hierarchy

Every layer of the stack raises typed subclasses of AgentLoopError.
Import from here, not from individual modules:
    from agentloop.exceptions import AgentStateError, ToolNotFoundError

Hierarchy:
    AgentLoopError
    ├── AgentError
    │   ├── AgentStateError
    │   ├── StepBudgetError
    │   ├── StepExecutionError
    │   ├── StrategyError
    │   ├── AgentCancelledError
    │   └── PlanExecutionError
    ├── ToolError
    │   ├── ToolRegistrationError
    │   ├── ToolNotFoundError
    │   ├── ToolArgumentError
    │   └── ToolExecutionError
    └── PlanError

    LLMError  (separate root in brain.llm_client, re-exported here)
    ├── LLMConnectionError
    ├── LLMRateLimitError
    ├── LLMContextError
    └── LLMInvalidRequestError
"""

from __future__ import annotations


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class AgentLoopError(Exception):
    """Base class for all agentloop exceptions."""


# ─────────────────────────────────────────────────────────────────────────────
# Agent layer
# ─────────────────────────────────────────────────────────────────────────────

class AgentError(AgentLoopError):
    """Base for agent control-loop errors."""


class AgentStateError(AgentError):
    """Illegal lifecycle transition or missing precondition (e.g. empty memory)."""


class StepBudgetError(AgentError):
    """The base step was asked to run after the step budget was used up."""


class StepExecutionError(AgentError):
    """A think/act cycle failed. The run is aborted and the agent enters ERROR."""

    def __init__(self, message: str, step: int = 0) -> None:
        super().__init__(message)
        self.step = step


class StrategyError(AgentError):
    """Wraps a failure raised by a strategy's think or act phase."""


class AgentCancelledError(AgentError):
    """The run observed its cancellation signal and unwound."""

    def __init__(self, message: str = "执行被取消", partial_result: str = "") -> None:
        super().__init__(message)
        self.partial_result = partial_result


class PlanExecutionError(AgentError):
    """A plan step failed; the step is marked blocked and orchestration stops."""

    def __init__(self, message: str, step_index: int = -1, partial_result: str = "") -> None:
        super().__init__(message)
        self.step_index = step_index
        self.partial_result = partial_result


# ─────────────────────────────────────────────────────────────────────────────
# Tool layer
# ─────────────────────────────────────────────────────────────────────────────

class ToolError(AgentLoopError):
    """Base for tool registry and tool execution errors."""


class ToolRegistrationError(ToolError):
    """Tool rejected at registration (empty or duplicate name)."""


class ToolNotFoundError(ToolError):
    """No tool is registered under the requested name."""

    def __init__(self, name: str, message: str = "") -> None:
        self.name = name
        super().__init__(message or f"工具 {name} 不存在")


class ToolArgumentError(ToolError):
    """Tool arguments could not be decoded or are invalid."""


class ToolExecutionError(ToolError):
    """The tool ran and reported a failure."""


# ─────────────────────────────────────────────────────────────────────────────
# Plan tracker
# ─────────────────────────────────────────────────────────────────────────────

class PlanError(AgentLoopError):
    """A plan tracker command was rejected (unknown plan, bad index, ...)."""


# ─────────────────────────────────────────────────────────────────────────────
# LLM errors — re-exported from brain for unified import path
# ─────────────────────────────────────────────────────────────────────────────

from agentloop.brain.llm_client import (  # noqa: E402
    LLMConnectionError,
    LLMContextError,
    LLMError,
    LLMInvalidRequestError,
    LLMRateLimitError,
)

__all__ = [
    "AgentLoopError",
    "AgentError",
    "AgentStateError",
    "StepBudgetError",
    "StepExecutionError",
    "StrategyError",
    "AgentCancelledError",
    "PlanExecutionError",
    "ToolError",
    "ToolRegistrationError",
    "ToolNotFoundError",
    "ToolArgumentError",
    "ToolExecutionError",
    "PlanError",
    "LLMError",
    "LLMConnectionError",
    "LLMRateLimitError",
    "LLMContextError",
    "LLMInvalidRequestError",
]
