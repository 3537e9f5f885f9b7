"""
agent/base.py — Agent Core

One generic step-loop driver. What a "step" does is supplied by an
injected StepStrategy (plain reply, tool calling, ...); the Agent owns
the lifecycle state machine, the step budget, the message log and the
stagnation check.

State machine:

    IDLE ──run()──► RUNNING ──► FINISHED | ERROR ──(finally)──► IDLE

A run() while RUNNING is rejected immediately, before the step counter or
memory are touched. Whatever happens inside the loop (success, step
failure, cancellation) the state is back to IDLE when run() returns or
raises.

Run loop:
  1. A non-empty request is appended as a user message and one seeding
     step runs at once. If it finishes the agent, its text is the result.
  2. Steps repeat while the counter is below max_steps and the agent is
     not FINISHED. Each step's text goes into the trace as "步骤 N: ...".
  3. After every step: stagnation check, then cancellation check.
  4. Reaching max_steps appends one "终止: 达到最大步骤数 (N)" marker.
"""

from __future__ import annotations

import asyncio
import threading
from enum import Enum
from typing import TYPE_CHECKING, Optional

from agentloop.agent.context import RunContext
from agentloop.brain.llm_client import BaseLLMClient
from agentloop.brain.types import Message, Role
from agentloop.exceptions import (
    AgentCancelledError,
    AgentStateError,
    StepBudgetError,
    StepExecutionError,
)
from agentloop.memory.message_log import MessageLog
from agentloop.observability.logger import bind_run, get_logger

if TYPE_CHECKING:
    from agentloop.agent.strategies import StepStrategy

log = get_logger(__name__)

DEFAULT_MAX_STEPS = 300
SINGLE_SHOT_MAX_STEPS = 1
DUPLICATE_THRESHOLD = 2

STUCK_MESSAGE = "检测到重复响应，任务可能已完成或遇到问题，正在终止执行。"
CANCELLED_MARKER = "执行被取消"
NO_STEPS_RESULT = "未执行任何步骤"


class AgentState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"
    ERROR = "error"


class Agent:
    """
    Generic think/act step-loop driver.

    Stagnation is checked only against the messages the current run added,
    not the whole log. An agent reused across orchestrated plan steps keeps
    its memory, and a step answered the same way as an earlier step is not
    a repeat within its own run. Pass scan_full_history=True for the
    whole-log check, where any two identical non-empty assistant messages
    anywhere in memory finish the agent.

    Args:
        name:               Used in logs and by the orchestrator.
        llm:                Reasoning oracle shared with the strategy.
        strategy:           What one step does. None = base behaviour, which
                            only checks its preconditions.
        memory:             Message log owned by this agent.
        max_steps:          Step budget per run (must be positive).
        scan_full_history:  Stagnation scan over the whole log instead of
                            only the messages added by the current run.
    """

    def __init__(
        self,
        name: str,
        llm: Optional[BaseLLMClient] = None,
        strategy: Optional["StepStrategy"] = None,
        *,
        description: str = "",
        memory: Optional[MessageLog] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        duplicate_threshold: int = DUPLICATE_THRESHOLD,
        scan_full_history: bool = False,
    ) -> None:
        self.name = name
        self.description = description
        self.llm = llm
        self.strategy = strategy
        self.memory = memory if memory is not None else MessageLog()
        self.duplicate_threshold = duplicate_threshold
        self.scan_full_history = scan_full_history

        self._lock = threading.Lock()
        self._state = AgentState.IDLE
        self._current_step = 0
        self._max_steps = DEFAULT_MAX_STEPS
        self._run_start = 0
        self.max_steps = max_steps

    # ── State ─────────────────────────────────────────────────────────────────

    @property
    def state(self) -> AgentState:
        with self._lock:
            return self._state

    @state.setter
    def state(self, value: AgentState) -> None:
        with self._lock:
            self._state = value

    @property
    def current_step(self) -> int:
        with self._lock:
            return self._current_step

    @property
    def max_steps(self) -> int:
        return self._max_steps

    @max_steps.setter
    def max_steps(self, value: int) -> None:
        if value <= 0:
            raise ValueError(f"max_steps must be positive, got {value}")
        self._max_steps = value

    def reset(self, clear_memory: bool = False) -> None:
        """Back to IDLE with a zero step counter. Memory is kept unless asked."""
        with self._lock:
            if self._state == AgentState.RUNNING:
                raise AgentStateError(f"无法重置运行中的代理 {self.name}")
            self._state = AgentState.IDLE
            self._current_step = 0
        if clear_memory:
            self.memory.clear()
            self._run_start = 0

    def finish(self, result: str = "") -> None:
        """Mark the agent FINISHED, recording `result` as an assistant message."""
        if result:
            self.memory.append(Message.assistant(result))
        self.state = AgentState.FINISHED

    # ── Run loop ──────────────────────────────────────────────────────────────

    async def run(self, request: str = "", ctx: Optional[RunContext] = None) -> str:
        """
        Drive think/act steps until FINISHED or the budget is used up.

        Returns the step trace joined by newlines. Raises AgentStateError
        if the agent is not IDLE, StepExecutionError if a step fails (state
        ERROR) and AgentCancelledError if the run is cancelled.
        """
        ctx = ctx or RunContext()

        with self._lock:
            if self._state != AgentState.IDLE:
                raise AgentStateError(f"无法从状态 {self._state.value} 运行代理")
            self._state = AgentState.RUNNING
            self._current_step = 0

        self._run_start = len(self.memory)
        results: list[str] = []

        with bind_run(ctx.run_id, self.name):
            log.info("agent.run_start", max_steps=self._max_steps, has_request=bool(request))
            try:
                return await self._run_loop(request, ctx, results)
            except AgentCancelledError as e:
                results.append(CANCELLED_MARKER)
                log.warning("agent.cancelled", step=self.current_step, reason=str(e))
                raise AgentCancelledError(str(e), partial_result="\n".join(results)) from e
            except asyncio.CancelledError as e:
                results.append(CANCELLED_MARKER)
                log.warning("agent.task_cancelled", step=self.current_step)
                raise AgentCancelledError(partial_result="\n".join(results)) from e
            finally:
                self.state = AgentState.IDLE
                log.info("agent.run_end", steps=self.current_step)

    async def _run_loop(self, request: str, ctx: RunContext, results: list[str]) -> str:
        if request:
            self.memory.append(Message.user(request))
            text = await self._checked_step(ctx, initial=True)
            results.append(f"步骤 {self.current_step}: {text}")
            self._check_stuck()
            if self.state == AgentState.FINISHED:
                return text

        while self.current_step < self._max_steps and self.state != AgentState.FINISHED:
            ctx.raise_if_cancelled()
            text = await self._checked_step(ctx)
            results.append(f"步骤 {self.current_step}: {text}")
            self._check_stuck()
            ctx.raise_if_cancelled()

        if self.current_step >= self._max_steps:
            results.append(f"终止: 达到最大步骤数 ({self._max_steps})")
            log.info("agent.budget_exhausted", max_steps=self._max_steps)

        if not results:
            return NO_STEPS_RESULT
        return "\n".join(results)

    async def _checked_step(self, ctx: RunContext, initial: bool = False) -> str:
        step_no = self.current_step + 1
        log.debug("agent.step_start", step=step_no, max_steps=self._max_steps)
        try:
            text = await self.step(ctx)
        except AgentCancelledError:
            raise
        except Exception as e:
            self.state = AgentState.ERROR
            log.error("agent.step_failed", step=step_no, error=str(e), error_type=type(e).__name__)
            if initial:
                raise StepExecutionError(f"初始步骤生成失败: {e}", step=step_no) from e
            raise StepExecutionError(f"步骤 {step_no} 执行失败: {e}", step=step_no) from e
        finally:
            # counted whether or not the step succeeded
            with self._lock:
                self._current_step = step_no

        log.debug("agent.step_done", step=step_no, state=self.state.value)
        return text

    async def step(self, ctx: RunContext) -> str:
        """One think/act cycle, delegated to the strategy."""
        if self.strategy is not None:
            return await self.strategy.step(self, ctx)
        if len(self.memory) == 0:
            raise AgentStateError("没有消息可处理")
        if self.current_step >= self._max_steps:
            raise StepBudgetError(f"已达到最大步骤数 ({self._max_steps})")
        last = self.memory.last()
        return last.content if last else ""

    # ── Stagnation ────────────────────────────────────────────────────────────

    def _check_stuck(self) -> None:
        if self.state != AgentState.FINISHED and self.is_stuck():
            self.handle_stuck_state()

    def is_stuck(self) -> bool:
        """
        True when the latest assistant content repeats at least
        duplicate_threshold times (itself included) in the scanned window.
        Empty content never counts, so bare tool-call turns do not trip it.
        """
        window = self.memory.messages if self.scan_full_history else self.memory.since(self._run_start)
        assistant = [m for m in window if m.role == Role.ASSISTANT]
        if not assistant or not assistant[-1].content:
            return False
        latest = assistant[-1].content
        return sum(1 for m in assistant if m.content == latest) >= self.duplicate_threshold

    def handle_stuck_state(self) -> None:
        log.warning("agent.stuck", step=self.current_step, threshold=self.duplicate_threshold)
        self.memory.append(Message.system(STUCK_MESSAGE))
        self.state = AgentState.FINISHED

    def __repr__(self) -> str:
        return f"<Agent name={self.name!r} state={self.state.value} step={self.current_step}/{self._max_steps}>"
