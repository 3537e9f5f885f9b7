"""
agent/strategies.py — Think/Act Strategies

A strategy decides what a single step of an Agent does. The Agent drives
the loop; the strategy only ever touches the agent through its memory, its
oracle client and its state.

  StepStrategy        think → (should_act) → act
  ├── PlainReplyStrategy   one oracle call, no tools, finishes the agent
  └── ToolCallStrategy     oracle may request tools; act dispatches them
                           through the shared ToolRegistry

Tool failures (unknown tool, bad arguments, tool raised) are written into
the matching tool message and the step summary. They never abort the batch
or the run; the oracle sees them on its next think.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, Optional, Sequence

from agentloop.agent.base import Agent, AgentState
from agentloop.agent.context import RunContext
from agentloop.brain.types import Message, Role, ToolCall, ToolChoice
from agentloop.exceptions import (
    AgentCancelledError,
    AgentStateError,
    StrategyError,
    ToolNotFoundError,
)
from agentloop.observability.logger import get_logger
from agentloop.tools.tool_registry import ToolRegistry
from agentloop.tools.types import normalise_result, truncate, validate_arguments

log = get_logger(__name__)

NO_ACTION_RESULT = "思考完成，无需行动"
MAX_RESULT_CHARS = 8000


class StepStrategy(ABC):
    """Think/act pair plugged into an Agent."""

    kind: ClassVar[str] = "base"

    @abstractmethod
    async def think(self, agent: Agent, ctx: RunContext) -> bool:
        """Consult the oracle and record its reply. Returns True if act() has work."""
        ...

    @abstractmethod
    async def act(self, agent: Agent, ctx: RunContext) -> str:
        """Carry out whatever think() decided. Returns the step summary."""
        ...

    async def step(self, agent: Agent, ctx: RunContext) -> str:
        try:
            should_act = await self.think(agent, ctx)
        except (AgentCancelledError, StrategyError):
            raise
        except Exception as e:
            raise StrategyError(f"思考失败: {e}") from e

        if not should_act:
            return self.idle_result(agent)

        try:
            return await self.act(agent, ctx)
        except (AgentCancelledError, StrategyError):
            raise
        except Exception as e:
            raise StrategyError(f"行动失败: {e}") from e

    def idle_result(self, agent: Agent) -> str:
        """Step text when think() found nothing to act on."""
        last = agent.memory.last(Role.ASSISTANT)
        if last is not None and last.content:
            return last.content
        return NO_ACTION_RESULT

    @staticmethod
    def _require_oracle(agent: Agent) -> None:
        if agent.llm is None:
            raise AgentStateError(f"代理 {agent.name} 没有配置语言模型")
        if len(agent.memory) == 0:
            raise AgentStateError("没有消息可处理")


# ─────────────────────────────────────────────────────────────────────────────
# Plain reply
# ─────────────────────────────────────────────────────────────────────────────


class PlainReplyStrategy(StepStrategy):
    """
    One oracle call without tools. The reply is recorded and the agent is
    finished, so a run performs exactly one step.
    """

    kind = "plain_reply"

    def __init__(self, system_prompt: Optional[str] = None) -> None:
        self.system_prompt = system_prompt

    async def think(self, agent: Agent, ctx: RunContext) -> bool:
        self._require_oracle(agent)
        system = [Message.system(self.system_prompt)] if self.system_prompt else None
        response = await ctx.guard(
            agent.llm.ask(agent.memory.messages, system_messages=system, tool_choice=ToolChoice.NONE)
        )
        agent.finish(response.content)
        log.debug("plain_reply.done", chars=len(response.content))
        return False

    async def act(self, agent: Agent, ctx: RunContext) -> str:
        return self.idle_result(agent)


# ─────────────────────────────────────────────────────────────────────────────
# Tool calling
# ─────────────────────────────────────────────────────────────────────────────


class ToolCallStrategy(StepStrategy):
    """
    Oracle-directed tool use.

    think() advertises the registry's tool definitions and records the reply
    plus one empty placeholder tool message per requested invocation. act()
    runs the invocations in order and answers each placeholder. An id the
    oracle repeats within one reply gets no second placeholder and is
    reported as skipped instead of run.

    A successful call to one of `special_tool_names` finishes the agent.
    """

    kind = "tool_calling"

    def __init__(
        self,
        registry: ToolRegistry,
        system_prompt: Optional[str] = None,
        *,
        tool_choice: ToolChoice = ToolChoice.AUTO,
        tool_names: Optional[Sequence[str]] = None,
        special_tool_names: Sequence[str] = ("terminate",),
        max_result_chars: int = MAX_RESULT_CHARS,
    ) -> None:
        self.registry = registry
        self.system_prompt = system_prompt
        self.tool_choice = tool_choice
        self.tool_names = list(tool_names) if tool_names is not None else None
        self.special_tool_names = tuple(special_tool_names)
        self.max_result_chars = max_result_chars

    async def think(self, agent: Agent, ctx: RunContext) -> bool:
        self._require_oracle(agent)
        system = [Message.system(self.system_prompt)] if self.system_prompt else None

        response = await ctx.guard(
            agent.llm.ask(
                agent.memory.messages,
                system_messages=system,
                tools=self.registry.definitions(self.tool_names),
                tool_choice=self.tool_choice,
            )
        )

        agent.memory.append(Message.assistant(response.content, response.tool_calls))
        reserved: set[str] = set()
        for call in response.tool_calls:
            if call.id in reserved:
                log.warning("toolcall.duplicate_id", tool=call.name, call_id=call.id)
                continue
            agent.memory.reserve_tool_result(call.id, name=call.name)
            reserved.add(call.id)

        log.info(
            "toolcall.think",
            tool_calls=[c.name for c in response.tool_calls],
            has_content=bool(response.content),
        )
        return response.has_tool_calls

    async def act(self, agent: Agent, ctx: RunContext) -> str:
        message = agent.memory.last_with_tool_calls()
        if message is None:
            raise AgentStateError("没有找到工具调用")

        lines: list[str] = []
        seen: set[str] = set()
        finish = False
        for call in message.tool_calls:
            ctx.raise_if_cancelled()
            if call.id in seen:
                lines.append(f"工具调用 ID 重复，已跳过: {call.name} ({call.id})")
                continue
            seen.add(call.id)
            content, summary, ok = await self._execute(call, ctx)
            agent.memory.fill_tool_result(call.id, content, name=call.name)
            lines.append(summary)
            if ok and call.name in self.special_tool_names:
                finish = True

        if finish:
            log.info("toolcall.special_tool_finished", agent=agent.name)
            agent.state = AgentState.FINISHED

        return f"执行了 {len(lines)} 个工具调用:\n" + "\n".join(lines)

    async def _execute(self, call: ToolCall, ctx: RunContext) -> tuple[str, str, bool]:
        """Run one invocation. Returns (tool message content, summary line, succeeded)."""
        try:
            tool = self.registry.get(call.name)
        except ToolNotFoundError as e:
            text = f"找不到工具 {call.name}: {e}"
            log.warning("tool.not_found", tool=call.name, call_id=call.id)
            return text, text, False

        try:
            arguments = call.parsed_arguments()
        except ValueError as e:
            text = f"解析工具参数失败: {e}"
            log.warning("tool.bad_arguments", tool=call.name, call_id=call.id, error=str(e))
            return text, text, False

        problem = validate_arguments(arguments, tool.parameters)
        if problem:
            text = f"解析工具参数失败: {problem}"
            log.warning("tool.bad_arguments", tool=call.name, call_id=call.id, error=problem)
            return text, text, False

        log.info("tool.exec_start", tool=call.name, call_id=call.id)
        try:
            result = await ctx.guard(tool.execute(**arguments))
        except AgentCancelledError:
            raise
        except Exception as e:
            text = f"执行工具失败: {e}"
            log.warning("tool.exec_error", tool=call.name, call_id=call.id, error=str(e), error_type=type(e).__name__)
            return text, text, False

        output = truncate(normalise_result(result), self.max_result_chars)
        log.info("tool.exec_done", tool=call.name, call_id=call.id, chars=len(output))
        return output, f"工具 {call.name} 执行结果: {output}", True
