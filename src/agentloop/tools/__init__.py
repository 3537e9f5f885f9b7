"""
tools/__init__.py — agentloop Tool System

Public interface for the tool system.

Usage:
    from agentloop.tools import ToolRegistry, setup_tools

    registry = setup_tools(ToolRegistry(), settings.tools)
    text = await registry.execute("planning", {"command": "list"})
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from agentloop.observability.logger import get_logger
from agentloop.tools.planning import PlanningTool, render_plan
from agentloop.tools.tool_registry import ToolRegistry
from agentloop.tools.types import BaseTool, FunctionTool, ToolSchema, tool

if TYPE_CHECKING:
    from agentloop.config.settings import ToolsConfig

__all__ = [
    "BaseTool",
    "FunctionTool",
    "PlanningTool",
    "ToolRegistry",
    "ToolSchema",
    "render_plan",
    "setup_tools",
    "tool",
]

log = get_logger(__name__)


def setup_tools(registry: ToolRegistry, config: Optional["ToolsConfig"] = None) -> ToolRegistry:
    """
    Register the built-in tools enabled in `config` (all defaults when None).

    Registration order is the order tools are advertised to the oracle.
    """
    if config is None:
        from agentloop.config.settings import ToolsConfig
        config = ToolsConfig()

    if config.terminate:
        from agentloop.tools.terminate import TerminateTool
        registry.register(TerminateTool())

    if config.wikipedia_search:
        from agentloop.tools.search import wikipedia_search
        registry.register(wikipedia_search)

    if config.file_operator:
        from agentloop.tools.filesystem import FileOperatorTool
        registry.register(FileOperatorTool(max_read_bytes=config.filesystem.max_read_bytes))

    if config.terminal_exec:
        from agentloop.tools.terminal import TerminalTool
        term = config.terminal
        registry.register(TerminalTool(
            working_dir=term.working_dir,
            default_timeout=term.default_timeout_seconds,
            max_timeout=term.max_timeout_seconds,
            max_output_chars=term.max_output_chars,
        ))

    if config.planning:
        registry.register(PlanningTool())

    log.info("tools.ready", tools=registry.names())
    return registry
