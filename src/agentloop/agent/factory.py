"""
agent/factory.py — Agent Stack Factory

Wires the registry, the general tool-calling agent, the planning
orchestrator and the single-shot agents from settings. The CLI and tests
build their stacks through here so every entry point shares one registry.

Usage:
    from agentloop.agent.factory import build_agent_stack
    stack = build_agent_stack(settings, llm_client)
    result = await stack.general.run("帮我搜索 Python 的历史")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from agentloop.agent.base import Agent
from agentloop.agent.chat import ChatAgent, ClassifierAgent
from agentloop.agent.planning import DEFAULT_EXECUTOR, PlanningOrchestrator
from agentloop.agent.strategies import ToolCallStrategy
from agentloop.brain.llm_client import BaseLLMClient
from agentloop.observability.logger import get_logger
from agentloop.tools import PlanningTool, ToolRegistry, setup_tools

log = get_logger(__name__)


@dataclass
class AgentStack:
    """All wired components returned by build_agent_stack()."""
    registry: ToolRegistry
    general: Agent
    chat: ChatAgent
    classifier: ClassifierAgent
    orchestrator: Optional[PlanningOrchestrator] = None


def build_system_prompt(name: str, registry: ToolRegistry) -> str:
    """System prompt listing every registered tool with its parameters."""
    prompt = f"你是{name}，一个强大的AI助手，能够使用各种工具帮助用户完成任务。\n\n你可以使用以下工具：\n\n"
    for i, t in enumerate(registry.list_tools(), start=1):
        prompt += f"{i}. {t.name} - {t.description}\n"
        properties = t.parameters.get("properties", {})
        if properties:
            required = set(t.parameters.get("required", []))
            prompt += "   参数:\n"
            for pname, spec in properties.items():
                flag = "必填" if pname in required else "可选"
                prompt += f"   - {pname}: {spec.get('description', '')}（{flag}）\n"
        prompt += "\n"
    prompt += (
        "当用户请求需要使用这些工具的任务时，请主动调用适当的工具来完成任务。"
        "每个工具都有特定的用途，请根据用户的需求选择最合适的工具。"
    )
    return prompt


def build_general_agent(
    llm: BaseLLMClient,
    registry: ToolRegistry,
    *,
    name: str = "Manus",
    max_steps: int = 300,
    system_prompt: Optional[str] = None,
) -> Agent:
    """Tool-calling agent with every registered tool."""
    strategy = ToolCallStrategy(registry, system_prompt or build_system_prompt(name, registry))
    return Agent(
        name,
        llm,
        strategy,
        description=f"{name} AI智能体 - 主智能体",
        max_steps=max_steps,
    )


def build_orchestrator(
    llm: BaseLLMClient,
    registry: ToolRegistry,
    default_executor: Agent,
    executors: Optional[dict[str, Agent]] = None,
) -> PlanningOrchestrator:
    """
    Orchestrator over the registry's PlanningTool. Registers one when the
    registry has none so executors and the orchestrator share the same plans.
    """
    if registry.has(PlanningTool.name):
        planning_tool = registry.get(PlanningTool.name)
    else:
        planning_tool = registry.register(PlanningTool())

    orchestrator = PlanningOrchestrator(llm, planning_tool)
    orchestrator.add_executor(DEFAULT_EXECUTOR, default_executor)
    for key, agent in (executors or {}).items():
        orchestrator.add_executor(key, agent)
    return orchestrator


def build_agent_stack(settings, llm: BaseLLMClient, registry: Optional[ToolRegistry] = None) -> AgentStack:
    """
    Wire up the full agent stack from settings.

    Args:
        settings:   Loaded Settings object.
        llm:        Pre-created oracle client.
        registry:   Registry to populate; a fresh one when None.
    """
    registry = setup_tools(registry if registry is not None else ToolRegistry(), settings.tools)

    general = build_general_agent(
        llm,
        registry,
        name=settings.agent.name,
        max_steps=settings.agent.max_steps,
        system_prompt=settings.agent.system_prompt,
    )
    orchestrator = None
    if settings.tools.planning:
        orchestrator = build_orchestrator(llm, registry, general)

    stack = AgentStack(
        registry=registry,
        general=general,
        chat=ChatAgent(llm),
        classifier=ClassifierAgent(llm),
        orchestrator=orchestrator,
    )
    log.info(
        "stack.ready",
        agent=general.name,
        tools=registry.names(),
        planning=orchestrator is not None,
    )
    return stack
