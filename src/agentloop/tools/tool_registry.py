"""
tools/tool_registry.py — Tool Registry

Name-keyed registry of the tools available to agents. The registry is
process-scoped and injected into every agent that needs it; agents look
tools up by name and never own tool instances.

Usage:
    registry = ToolRegistry()
    registry.register(PlanningTool())
    registry.register(file_operator)          # a FunctionTool

    tool = registry.get("planning")
    definitions = registry.definitions()      # what the oracle sees
    text = await registry.execute("planning", {"command": "list"})
"""

from __future__ import annotations

import threading
from typing import Any, Iterator, Optional

from agentloop.exceptions import ToolNotFoundError, ToolRegistrationError
from agentloop.observability.logger import get_logger
from agentloop.tools.types import BaseTool, normalise_result

log = get_logger(__name__)


class ToolRegistry:
    """
    Registry that maps tool names to tool instances.

    Lookups and registrations are guarded by one re-entrant lock, so several
    agents may share a registry across threads while tools are being added.
    Insertion order is preserved and is the order tools are advertised in.
    """

    def __init__(self, tools: Optional[list[BaseTool]] = None) -> None:
        self._tools: dict[str, BaseTool] = {}
        self._lock = threading.RLock()
        for t in tools or []:
            self.register(t)

    # ── Registration ──────────────────────────────────────────────────────────

    def register(self, tool: BaseTool) -> BaseTool:
        """
        Add a tool. Rejects an empty name or a name that is already taken;
        a rejected registration leaves the existing entry untouched.
        """
        if not isinstance(tool, BaseTool):
            raise ToolRegistrationError(f"{tool!r} does not implement BaseTool")
        name = (tool.name or "").strip()
        if not name:
            raise ToolRegistrationError("工具名称不能为空")

        with self._lock:
            if name in self._tools:
                raise ToolRegistrationError(f"工具 {name} 已存在")
            self._tools[name] = tool

        log.debug("tool.registered", tool=name)
        return tool

    def unregister(self, name: str) -> BaseTool:
        with self._lock:
            tool = self._tools.pop(name, None)
        if tool is None:
            raise ToolNotFoundError(name)
        log.debug("tool.unregistered", tool=name)
        return tool

    # ── Lookup ────────────────────────────────────────────────────────────────

    def get(self, name: str) -> BaseTool:
        with self._lock:
            tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._tools

    def names(self) -> list[str]:
        with self._lock:
            return list(self._tools)

    def list_tools(self) -> list[BaseTool]:
        with self._lock:
            return list(self._tools.values())

    def definitions(self, names: Optional[list[str]] = None) -> list[dict[str, Any]]:
        """
        Tool definitions in the oracle's function-calling format.

        `names` narrows the list (unknown names raise ToolNotFoundError).
        """
        if names is None:
            return [t.to_llm_schema() for t in self.list_tools()]
        return [self.get(n).to_llm_schema() for n in names]

    # ── Execution ─────────────────────────────────────────────────────────────

    async def execute(self, name: str, arguments: Optional[dict[str, Any]] = None) -> str:
        """
        Resolve and run a tool, returning its result as text.

        Errors raised by the tool propagate unchanged; callers decide whether
        a failure is fatal.
        """
        tool = self.get(name)
        result = await tool.execute(**(arguments or {}))
        return normalise_result(result)

    # ── Container protocol ────────────────────────────────────────────────────

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def __iter__(self) -> Iterator[BaseTool]:
        return iter(self.list_tools())

    def __repr__(self) -> str:
        return f"<ToolRegistry tools={self.names()}>"
