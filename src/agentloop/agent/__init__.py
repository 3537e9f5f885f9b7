"""
agent/ — agentloop Agent Core

Public API:
    from agentloop.agent import Agent, ToolCallStrategy, PlanningOrchestrator

Component overview:
    Agent                 Step-loop driver: state machine, budget, stagnation
    RunContext            Per-run id, cancellation signal and deadline
    StepStrategy          What one step does (plain reply, tool calling)
    PlanningOrchestrator  Plans a request, then delegates each step to an Agent
    ChatAgent             Single-shot conversation, no tools
    ClassifierAgent       Labels input as chat / task / plan
"""

from agentloop.agent.base import Agent, AgentState
from agentloop.agent.chat import ChatAgent, ClassifierAgent, InputType
from agentloop.agent.context import RunContext
from agentloop.agent.planning import PlanningOrchestrator
from agentloop.agent.strategies import PlainReplyStrategy, StepStrategy, ToolCallStrategy

__all__ = [
    "Agent",
    "AgentState",
    "RunContext",
    "StepStrategy",
    "PlainReplyStrategy",
    "ToolCallStrategy",
    "PlanningOrchestrator",
    "ChatAgent",
    "ClassifierAgent",
    "InputType",
]
