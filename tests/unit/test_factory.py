"""
tests/unit/test_factory.py — Agent Stack Wiring Tests
"""

from __future__ import annotations

from agentloop.agent import PlanningOrchestrator, ToolCallStrategy
from agentloop.agent.factory import (
    build_agent_stack,
    build_general_agent,
    build_orchestrator,
    build_system_prompt,
)
from agentloop.config.settings import Settings
from agentloop.tools import PlanningTool, ToolRegistry
from agentloop.tools.terminate import TerminateTool

from fakes import EchoTool, ScriptedLLM


class TestSystemPrompt:
    def test_lists_tools_with_parameters(self):
        prompt = build_system_prompt("Manus", ToolRegistry([EchoTool(), TerminateTool()]))
        assert prompt.startswith("你是Manus，一个强大的AI助手")
        assert "1. echo - Echo the text back\n   参数:\n   - text: Text to echo（必填）\n" in prompt
        assert "2. terminate - " in prompt
        assert "   - message: 终止消息（可选）\n" in prompt
        assert prompt.endswith("请根据用户的需求选择最合适的工具。")

    def test_empty_registry(self):
        prompt = build_system_prompt("X", ToolRegistry([]))
        assert "你可以使用以下工具：\n\n当用户请求" in prompt


class TestBuilders:
    def test_general_agent_uses_explicit_prompt(self):
        agent = build_general_agent(ScriptedLLM(), ToolRegistry([EchoTool()]), name="Bob", max_steps=7,
                                    system_prompt="custom")
        assert agent.name == "Bob"
        assert agent.max_steps == 7
        assert isinstance(agent.strategy, ToolCallStrategy)
        assert agent.strategy.system_prompt == "custom"

    def test_orchestrator_reuses_registered_planning_tool(self):
        planning = PlanningTool()
        registry = ToolRegistry([planning])
        general = build_general_agent(ScriptedLLM(), registry)
        orchestrator = build_orchestrator(ScriptedLLM(), registry, general)
        assert orchestrator.planning_tool is planning
        assert orchestrator.get_executor("") is general

    def test_orchestrator_registers_planning_tool_when_missing(self):
        registry = ToolRegistry()
        orchestrator = build_orchestrator(ScriptedLLM(), registry, build_general_agent(ScriptedLLM(), registry))
        assert registry.get("planning") is orchestrator.planning_tool


class TestAgentStack:
    def test_full_stack(self):
        settings = Settings(agent={"name": "Helper", "max_steps": 9})
        llm = ScriptedLLM()
        stack = build_agent_stack(settings, llm)

        assert stack.registry.names() == ["terminate", "wikipedia_search", "file_operator", "planning"]
        assert stack.general.name == "Helper"
        assert stack.general.max_steps == 9
        assert isinstance(stack.orchestrator, PlanningOrchestrator)
        assert stack.orchestrator.planning_tool is stack.registry.get("planning")
        assert stack.chat.name == "chat"
        assert stack.classifier.name == "classifier"
        assert "你是Helper" in stack.general.strategy.system_prompt

    def test_planning_disabled(self):
        settings = Settings(tools={"planning": False, "terminal_exec": True})
        stack = build_agent_stack(settings, ScriptedLLM())
        assert stack.orchestrator is None
        assert "planning" not in stack.registry
        assert "terminal_exec" in stack.registry
