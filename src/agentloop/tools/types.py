"""
tools/types.py — Tool System Contracts

Every capability the agent can invoke implements BaseTool: a name, a
description shown to the oracle, a JSON parameter schema and an async
execute(). The registry never probes tools for optional capabilities;
the four members are mandatory.

Two ways to build a tool:

    class Terminate(BaseTool):          # stateful / class-based
        name = "terminate"
        ...

    @tool(name="file_operator", description="...", parameters={...})
    async def file_operator(operation: str, file_path: str) -> str:
        ...                             # function-based, becomes a FunctionTool
"""

from __future__ import annotations

import inspect
import json
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, Field


def _empty_parameters() -> dict[str, Any]:
    return {"type": "object", "properties": {}, "required": []}


class ToolSchema(BaseModel):
    """Metadata advertised to the oracle for a single tool."""
    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=_empty_parameters)

    def to_llm_schema(self) -> dict[str, Any]:
        """OpenAI-style function tool definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


# ─────────────────────────────────────────────────────────────────────────────
# Tool contract
# ─────────────────────────────────────────────────────────────────────────────


class BaseTool(ABC):
    """Uniform contract every registered tool implements."""

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = _empty_parameters()

    @abstractmethod
    async def execute(self, **kwargs: Any) -> Any:
        """Run the tool. Raise to report failure; return any value otherwise."""
        ...

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(name=self.name, description=self.description, parameters=self.parameters)

    def to_llm_schema(self) -> dict[str, Any]:
        return self.schema.to_llm_schema()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class FunctionTool(BaseTool):
    """Adapts a plain async function to the BaseTool contract."""

    def __init__(
        self,
        fn: Callable[..., Awaitable[Any]],
        name: str,
        description: str,
        parameters: Optional[dict[str, Any]] = None,
    ) -> None:
        if not inspect.iscoroutinefunction(fn):
            raise TypeError(f"tool '{name}' handler must be an async function")
        self._fn = fn
        self.name = name
        self.description = description
        self.parameters = parameters or _empty_parameters()

    async def execute(self, **kwargs: Any) -> Any:
        return await self._fn(**kwargs)

    @property
    def handler(self) -> Callable[..., Awaitable[Any]]:
        return self._fn


def tool(
    name: str,
    description: str,
    parameters: Optional[dict[str, Any]] = None,
) -> Callable[[Callable[..., Awaitable[Any]]], FunctionTool]:
    """
    Decorator turning an async function into a FunctionTool.

    Registration is a separate, explicit step (ToolRegistry.register) so a
    module import never mutates a shared registry.
    """
    def decorator(fn: Callable[..., Awaitable[Any]]) -> FunctionTool:
        return FunctionTool(fn, name=name, description=description, parameters=parameters)

    return decorator


# ─────────────────────────────────────────────────────────────────────────────
# Helpers shared by callers that dispatch tools
# ─────────────────────────────────────────────────────────────────────────────

_JSON_TYPE_MAP: dict[str, type | tuple] = {
    "string":  str,
    "integer": int,
    "number":  (int, float),
    "boolean": bool,
    "array":   list,
    "object":  dict,
}


def validate_arguments(arguments: dict[str, Any], schema: dict[str, Any]) -> Optional[str]:
    """
    Check arguments against a tool's JSON schema.

    Returns an error string if invalid, None if valid. Only required-field
    presence and top-level JSON types are checked; unknown fields pass.
    """
    for field in schema.get("required", []):
        if field not in arguments:
            return f"Missing required field: '{field}'"

    properties = schema.get("properties", {})
    for field, value in arguments.items():
        json_type = properties.get(field, {}).get("type")
        expected = _JSON_TYPE_MAP.get(json_type) if isinstance(json_type, str) else None
        if expected is None:
            continue
        # bool is a subclass of int
        if json_type in ("integer", "number") and isinstance(value, bool):
            return f"Field '{field}' must be of type {json_type}, got boolean"
        if not isinstance(value, expected):
            return f"Field '{field}' must be of type {json_type}, got {type(value).__name__}"

        enum = properties[field].get("enum")
        if enum and value not in enum:
            return f"Field '{field}' must be one of {enum}, got {value!r}"

    return None


def normalise_result(result: Any) -> str:
    """Convert any tool return value to text for the message log."""
    if result is None:
        return "Done."
    if isinstance(result, str):
        return result
    if isinstance(result, (dict, list)):
        return json.dumps(result, ensure_ascii=False, indent=2, default=str)
    return str(result)


def truncate(text: str, max_chars: int) -> str:
    """Truncate text if too long, with a notice."""
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return (
        text[:max_chars]
        + f"\n\n[Output truncated — {len(text) - max_chars} chars omitted. "
        f"Total: {len(text)} chars]"
    )
