"""
agent/planning.py — Planning Orchestrator

Turns one request into a plan held by the PlanningTool, then walks the
plan step by step, delegating each step to an executor Agent.

Flow:
  1. create_initial_plan: the oracle is forced to call `planning`; its
     first call becomes a `create` with our plan_id. Anything that goes
     wrong falls back to a three-step default plan.
  2. Loop: read the rendered plan, pick the first step marked [ ] or [→],
     mark it in_progress, route it by its [TAG] to an executor (or to
     "default"), run the executor, mark the step completed or blocked.
  3. finalize_plan: the oracle summarises the completed plan.

The loop runs at most as many steps as the plan had when it was created.
If executors grow the plan past that, the run stops with a
PlanExecutionError carrying the trace so far instead of a summary.

The rendered plan text is what executors see in their prompt and what the
step scan reads. render_plan() indents every continuation line, so a step
result that quotes a plan cannot add step lines of its own.
"""

from __future__ import annotations

import re
import threading
import time
from typing import Optional

from agentloop.agent.base import Agent
from agentloop.agent.context import RunContext
from agentloop.brain.llm_client import BaseLLMClient, LLMError
from agentloop.brain.types import Message, ToolChoice
from agentloop.exceptions import (
    AgentCancelledError,
    AgentStateError,
    PlanError,
    PlanExecutionError,
)
from agentloop.memory.message_log import MessageLog
from agentloop.observability.logger import bind_run, get_logger
from agentloop.tools.planning import STEP_LINE_RE, PlanningTool, StepStatus, parse_progress

log = get_logger(__name__)

DEFAULT_EXECUTOR = "default"
DEFAULT_PLAN_STEPS = ["分析请求", "执行任务", "验证结果"]
PENDING_MARKS = (StepStatus.NOT_STARTED.mark, StepStatus.IN_PROGRESS.mark)
TAG_RE = re.compile(r"\[([A-Z_]+)\]")

PLANNER_SYSTEM_PROMPT = (
    "你是一个规划助手。你的任务是创建一个详细的计划，包含清晰的步骤来完成用户的请求。"
    "每个步骤应该具体且可执行。如果步骤涉及特定类型的操作，请使用方括号标记，例如[SEARCH]表示搜索操作，"
    "[CODE]表示编码操作。这将帮助系统选择合适的工具来执行该步骤。"
)
PLANNER_USER_PROMPT = "为完成以下任务创建一个详细的计划：{request}"

STEP_PROMPT = """
当前计划状态:
{plan}

你的当前任务:
你正在执行步骤 {number}: "{text}"

请使用适当的工具执行此步骤。完成后，提供一个总结说明你完成了什么。
"""

SUMMARY_SYSTEM_PROMPT = "你是一个总结助手。请简明扼要地总结已完成的计划和结果。"
SUMMARY_USER_PROMPT = """
计划已完成:
{plan}

请提供一个简短的总结，说明已完成的工作和结果。
"""


def extract_step_type(step_text: str) -> str:
    """Lower-cased [TAG] from a step's text, or "" when it has none."""
    m = TAG_RE.search(step_text)
    return m.group(1).lower() if m else ""


class PlanningOrchestrator:
    """
    Plan-then-delegate driver.

    Args:
        llm:            Oracle used for planning and the final summary.
        planning_tool:  Plan store; normally the instance registered in the
                        shared ToolRegistry so executors see the same plans.
        executors:      Step-type tag → executor agent. "default" is required
                        before run() is called.
    """

    kind = "plan_delegating"

    def __init__(
        self,
        llm: BaseLLMClient,
        planning_tool: PlanningTool,
        executors: Optional[dict[str, Agent]] = None,
        *,
        name: str = "planner",
    ) -> None:
        self.name = name
        self.llm = llm
        self.planning_tool = planning_tool
        self.executors: dict[str, Agent] = dict(executors or {})
        self.memory = MessageLog()
        self.active_plan_id: Optional[str] = None
        self.current_step = -1

        self._lock = threading.Lock()
        self._running = False

    def add_executor(self, key: str, agent: Agent) -> None:
        self.executors[key] = agent

    def get_executor(self, step_type: str) -> Agent:
        if step_type and step_type in self.executors:
            return self.executors[step_type]
        executor = self.executors.get(DEFAULT_EXECUTOR)
        if executor is None:
            raise AgentStateError("没有可用的默认执行器")
        return executor

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    # ── Run ───────────────────────────────────────────────────────────────────

    async def run(self, request: str, ctx: Optional[RunContext] = None) -> str:
        ctx = ctx or RunContext()
        if DEFAULT_EXECUTOR not in self.executors:
            raise AgentStateError("没有可用的默认执行器")

        with self._lock:
            if self._running:
                raise AgentStateError(f"规划代理 {self.name} 正在运行")
            self._running = True

        try:
            with bind_run(ctx.run_id, self.name):
                self.memory.clear()
                self.current_step = -1
                log.info("plan.run_start", executors=sorted(self.executors))

                plan_id = await self.create_initial_plan(request, ctx)
                budget = self._step_budget(plan_id)
                return await self.execute_plan(plan_id, budget, ctx)
        finally:
            with self._lock:
                self._running = False

    async def create_initial_plan(self, request: str, ctx: RunContext) -> str:
        """Create the plan for `request`. Returns the id it was stored under."""
        plan_id = f"plan_{int(time.time())}"
        self.memory.append(Message.user(PLANNER_USER_PROMPT.format(request=request)))

        created = False
        try:
            response = await ctx.guard(
                self.llm.ask(
                    self.memory.messages,
                    system_messages=[Message.system(PLANNER_SYSTEM_PROMPT)],
                    tools=[self.planning_tool.to_llm_schema()],
                    tool_choice=ToolChoice.REQUIRED,
                )
            )
        except LLMError as e:
            log.warning("plan.create_oracle_failed", error=str(e))
        else:
            self.memory.append(Message.assistant(response.content, response.tool_calls))
            created = await self._create_from_calls(response.tool_calls, plan_id)

        if not created:
            log.warning("plan.default_plan", plan_id=plan_id)
            await self.planning_tool.execute(
                command="create",
                plan_id=plan_id,
                title=f"计划: {request}",
                steps=list(DEFAULT_PLAN_STEPS),
            )

        # create() picks a fresh id if plan_id was already taken
        self.active_plan_id = self.planning_tool.active_plan_id
        log.info("plan.created", plan_id=self.active_plan_id, default=not created)
        return self.active_plan_id

    async def _create_from_calls(self, tool_calls, plan_id: str) -> bool:
        for call in tool_calls:
            if call.name != self.planning_tool.name:
                continue
            try:
                arguments = call.parsed_arguments()
            except ValueError as e:
                log.warning("plan.bad_arguments", call_id=call.id, error=str(e))
                continue
            arguments.update(command="create", plan_id=plan_id)
            try:
                await self.planning_tool.execute(**arguments)
            except PlanError as e:
                log.warning("plan.create_failed", error=str(e))
                return False
            return True
        return False

    def _step_budget(self, plan_id: str) -> int:
        budget = self.planning_tool.step_count(plan_id)
        progress = parse_progress(self.planning_tool.render(plan_id))
        if progress is not None and progress[1] != budget:
            log.warning("plan.progress_mismatch", rendered_total=progress[1], steps=budget)
        return budget

    # ── Execution ─────────────────────────────────────────────────────────────

    async def execute_plan(self, plan_id: str, budget: int, ctx: RunContext) -> str:
        trace: list[str] = []
        executed = 0

        while True:
            ctx.raise_if_cancelled()
            found = await self.next_step(plan_id)
            if found is None:
                break
            index, text = found
            if executed >= budget:
                log.warning("plan.budget_exhausted", budget=budget, step=index + 1)
                raise PlanExecutionError(
                    f"终止: 达到最大步骤数 ({budget})",
                    step_index=index,
                    partial_result="\n\n".join(trace),
                )

            self.current_step = index
            executor = self.get_executor(extract_step_type(text))
            log.info("plan.step_start", step=index + 1, executor=executor.name)

            try:
                result = await self.execute_step(plan_id, index, text, executor, ctx)
            except AgentCancelledError as e:
                raise AgentCancelledError(str(e), partial_result="\n\n".join(trace)) from e
            except Exception as e:
                await self._mark(plan_id, index, StepStatus.BLOCKED, f"错误: {e}")
                log.error("plan.step_failed", step=index + 1, error=str(e), error_type=type(e).__name__)
                raise PlanExecutionError(
                    f"执行步骤 {index + 1} 失败: {e}",
                    step_index=index,
                    partial_result="\n\n".join(trace),
                ) from e

            await self._mark(plan_id, index, StepStatus.COMPLETED, f"结果: {result}")
            trace.append(f"步骤 {index + 1} 完成: {text}\n\n{result}")
            executed += 1
            log.info("plan.step_done", step=index + 1)

        plan_text, summary = await self.finalize_plan(plan_id, ctx)
        out = f"计划完成！\n\n{plan_text}\n\n总结:\n{summary}"
        if trace:
            out += "\n\n" + "\n\n".join(trace)
        return out

    async def next_step(self, plan_id: str) -> Optional[tuple[int, str]]:
        """
        First step rendered as [ ] or [→], marked in_progress.
        Returns (0-based index, step text) or None when every step is done.
        """
        plan_text = await self.planning_tool.execute(command="get", plan_id=plan_id)
        for m in STEP_LINE_RE.finditer(plan_text):
            if m.group(2) in PENDING_MARKS:
                index = int(m.group(1)) - 1
                await self._mark(plan_id, index, StepStatus.IN_PROGRESS)
                return index, m.group(3)
        return None

    async def execute_step(self, plan_id: str, index: int, text: str, executor: Agent, ctx: RunContext) -> str:
        plan_text = await self.planning_tool.execute(command="get", plan_id=plan_id)
        prompt = STEP_PROMPT.format(plan=plan_text, number=index + 1, text=text)
        executor.reset()
        return await executor.run(prompt, ctx.child())

    async def finalize_plan(self, plan_id: str, ctx: RunContext) -> tuple[str, str]:
        """Ask the oracle for a summary. Returns (rendered plan, summary)."""
        plan_text = await self.planning_tool.execute(command="get", plan_id=plan_id)

        self.memory.clear()
        self.memory.append(Message.user(SUMMARY_USER_PROMPT.format(plan=plan_text)))
        response = await ctx.guard(
            self.llm.ask(
                self.memory.messages,
                system_messages=[Message.system(SUMMARY_SYSTEM_PROMPT)],
            )
        )
        self.memory.append(Message.assistant(response.content))
        log.info("plan.finalized", plan_id=plan_id)
        return plan_text, response.content

    async def _mark(self, plan_id: str, index: int, status: StepStatus, note: Optional[str] = None) -> None:
        kwargs = {"step_notes": note} if note is not None else {}
        try:
            await self.planning_tool.execute(
                command="mark_step",
                plan_id=plan_id,
                step_index=index,
                step_status=status.value,
                **kwargs,
            )
        except PlanError as e:
            log.warning("plan.mark_failed", step=index + 1, status=status.value, error=str(e))

    def __repr__(self) -> str:
        return f"<PlanningOrchestrator name={self.name!r} executors={sorted(self.executors)}>"
