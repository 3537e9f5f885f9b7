"""
tools/planning.py — Plan Tracker Tool

Registered as `planning`. Lets an agent (or the planning orchestrator)
create and manage step-structured plans through the ordinary tool contract.

Commands: create, update, list, get, set_active, mark_step, delete.

The rendered plan text is read back by the orchestrator with regular
expressions, so render_plan() output must stay byte-for-byte stable:

    计划: <title> (ID: <plan_id>)
    ==========================          (one '=' per UTF-8 byte of the line above, incl. newline)

    进度: 1/2 步骤已完成 (50.0%)
    状态: 1 已完成, 0 进行中, 0 已阻塞, 1 未开始

    步骤:
    1. [✓] first step
       备注: some note
          second line of the note
    2. [ ] second step

Multi-line step texts and notes have their continuation lines indented
by six spaces, so a note quoting another plan cannot pass for a step line.
"""

from __future__ import annotations

import re
import threading
import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from agentloop.exceptions import PlanError
from agentloop.observability.logger import get_logger
from agentloop.tools.types import BaseTool

log = get_logger(__name__)


class StepStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"

    @property
    def mark(self) -> str:
        return _STATUS_MARKS[self]


_STATUS_MARKS = {
    StepStatus.NOT_STARTED: "[ ]",
    StepStatus.IN_PROGRESS: "[→]",
    StepStatus.COMPLETED: "[✓]",
    StepStatus.BLOCKED: "[!]",
}

# Patterns over the rendered text
PROGRESS_RE = re.compile(r"^进度: (\d+)/(\d+) 步骤已完成 \((\d+\.\d)%\)$", re.MULTILINE)
STEP_LINE_RE = re.compile(r"^(\d+)\. (\[.\]) (.+)$", re.MULTILINE)
CONTINUATION_INDENT = " " * 6


class PlanStep(BaseModel):
    text: str
    status: StepStatus = StepStatus.NOT_STARTED
    note: str = ""


class Plan(BaseModel):
    plan_id: str
    title: str
    steps: list[PlanStep] = Field(default_factory=list)

    def count(self, status: StepStatus) -> int:
        return sum(1 for s in self.steps if s.status == status)

    @property
    def progress(self) -> float:
        if not self.steps:
            return 0.0
        return self.count(StepStatus.COMPLETED) / len(self.steps) * 100


def render_plan(plan: Plan) -> str:
    """Deterministic text rendering of a plan."""
    header = f"计划: {plan.title} (ID: {plan.plan_id})\n"
    out = header + "=" * len(header.encode("utf-8")) + "\n\n"

    completed = plan.count(StepStatus.COMPLETED)
    out += f"进度: {completed}/{len(plan.steps)} 步骤已完成 ({plan.progress:.1f}%)\n"
    out += (
        f"状态: {completed} 已完成, "
        f"{plan.count(StepStatus.IN_PROGRESS)} 进行中, "
        f"{plan.count(StepStatus.BLOCKED)} 已阻塞, "
        f"{plan.count(StepStatus.NOT_STARTED)} 未开始\n\n"
    )

    out += "步骤:\n"
    for i, step in enumerate(plan.steps):
        out += f"{i + 1}. {step.status.mark} {_indent(step.text)}\n"
        if step.note:
            out += f"   备注: {_indent(step.note)}\n"
    return out


def _indent(text: str) -> str:
    # continuation lines never start at column 0
    return text.replace("\n", "\n" + CONTINUATION_INDENT)


def parse_progress(text: str) -> Optional[tuple[int, int]]:
    """(completed, total) from a rendered plan's progress line, or None."""
    m = PROGRESS_RE.search(text)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


_PARAMETERS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "command": {
            "type": "string",
            "description": "要执行的命令。可用命令：create, update, list, get, set_active, mark_step, delete",
            "enum": ["create", "update", "list", "get", "set_active", "mark_step", "delete"],
        },
        "plan_id": {
            "type": "string",
            "description": (
                "计划的唯一标识符。对于update, set_active和delete命令是必需的。"
                "对于get和mark_step是可选的（如果未指定，则使用活动计划）。"
            ),
        },
        "title": {
            "type": "string",
            "description": "计划的标题。对于create命令是必需的，对于update命令是可选的。",
        },
        "steps": {
            "type": "array",
            "description": "计划步骤列表。对于create命令是必需的，对于update命令是可选的。",
            "items": {"type": "string"},
        },
        "step_index": {
            "type": "integer",
            "description": "要更新的步骤索引（从0开始）。对于mark_step命令是必需的。",
        },
        "step_status": {
            "type": "string",
            "description": "为步骤设置的状态。与mark_step命令一起使用。",
            "enum": [s.value for s in StepStatus],
        },
        "step_notes": {
            "type": "string",
            "description": "步骤的附加说明。对于mark_step命令是可选的。",
        },
    },
    "required": ["command"],
}


class PlanningTool(BaseTool):
    """
    In-memory plan store exposed as the `planning` tool.

    At most one plan is active; get and mark_step target it when no
    plan_id is given. All commands run under a lock so agents sharing the
    registry see consistent plans.
    """

    name = "planning"
    description = (
        "一个规划工具，允许代理创建和管理解决复杂任务的计划。"
        "该工具提供创建计划、更新计划步骤和跟踪进度的功能。"
    )
    parameters = _PARAMETERS

    def __init__(self) -> None:
        self._plans: dict[str, Plan] = {}
        self._active: Optional[str] = None
        self._lock = threading.Lock()

    async def execute(self, command: str = "", **kwargs: Any) -> str:
        handlers = {
            "create": self._create,
            "update": self._update,
            "list": self._list,
            "get": self._get,
            "set_active": self._set_active,
            "mark_step": self._mark_step,
            "delete": self._delete,
        }
        if not command:
            raise PlanError("无效的命令参数")
        handler = handlers.get(command)
        if handler is None:
            raise PlanError(f"未知命令: {command}")
        with self._lock:
            result = handler(**kwargs)
        log.debug("planning.command", command=command, active=self._active)
        return result

    # ── Structured queries (in-process callers) ───────────────────────────────

    @property
    def active_plan_id(self) -> Optional[str]:
        return self._active

    def get_plan(self, plan_id: Optional[str] = None) -> Plan:
        """Deep copy of a plan (the active one by default)."""
        with self._lock:
            return self._resolve(plan_id).model_copy(deep=True)

    def step_count(self, plan_id: Optional[str] = None) -> int:
        with self._lock:
            return len(self._resolve(plan_id).steps)

    def render(self, plan_id: Optional[str] = None) -> str:
        with self._lock:
            return render_plan(self._resolve(plan_id))

    # ── Commands ──────────────────────────────────────────────────────────────

    def _create(
        self,
        title: str = "",
        steps: Optional[list[Any]] = None,
        plan_id: Optional[str] = None,
        **_: Any,
    ) -> str:
        if not title:
            raise PlanError("创建计划需要标题")
        if not steps:
            raise PlanError("创建计划需要步骤列表")
        texts = self._step_texts(steps)

        new_id = plan_id or self._new_id()
        while new_id in self._plans:
            new_id = self._new_id()

        plan = Plan(plan_id=new_id, title=title, steps=[PlanStep(text=t) for t in texts])
        self._plans[new_id] = plan
        self._active = new_id
        log.info("planning.created", plan_id=new_id, steps=len(texts))
        return render_plan(plan)

    def _update(
        self,
        plan_id: Optional[str] = None,
        title: Optional[str] = None,
        steps: Optional[list[Any]] = None,
        **_: Any,
    ) -> str:
        if not plan_id:
            raise PlanError("更新计划需要计划ID")
        plan = self._lookup(plan_id)

        if title:
            plan.title = title

        if steps:
            texts = self._step_texts(steps)
            old = plan.steps
            plan.steps = [
                old[i].model_copy() if i < len(old) and old[i].text == text else PlanStep(text=text)
                for i, text in enumerate(texts)
            ]
        return render_plan(plan)

    def _list(self, **_: Any) -> str:
        if not self._plans:
            return "没有可用的计划"
        out = "可用计划:\n\n"
        for pid, plan in self._plans.items():
            marker = " (当前活动)" if pid == self._active else ""
            out += f"- {pid}: {plan.title}{marker} ({len(plan.steps)} 步骤)\n"
        return out

    def _get(self, plan_id: Optional[str] = None, **_: Any) -> str:
        return render_plan(self._resolve(plan_id))

    def _set_active(self, plan_id: Optional[str] = None, **_: Any) -> str:
        if not plan_id:
            raise PlanError("设置活动计划需要计划ID")
        self._lookup(plan_id)
        self._active = plan_id
        return f"已将计划 '{plan_id}' 设置为活动计划"

    def _mark_step(
        self,
        plan_id: Optional[str] = None,
        step_index: Optional[int] = None,
        step_status: Optional[str] = None,
        step_notes: Optional[str] = None,
        step_note: Optional[str] = None,
        **_: Any,
    ) -> str:
        plan = self._resolve(plan_id)

        if step_index is None or isinstance(step_index, bool):
            raise PlanError("标记步骤需要步骤索引")
        index = int(step_index)
        if index < 0 or index >= len(plan.steps):
            raise PlanError(f"步骤索引 {index} 超出范围 (0-{len(plan.steps) - 1})")

        if not step_status:
            raise PlanError("标记步骤需要步骤状态")
        try:
            status = StepStatus(step_status)
        except ValueError:
            raise PlanError(f"无效的步骤状态: {step_status}") from None

        step = plan.steps[index]
        step.status = status
        note = step_notes if step_notes is not None else step_note
        if note is not None:
            step.note = note
        return render_plan(plan)

    def _delete(self, plan_id: Optional[str] = None, **_: Any) -> str:
        if not plan_id:
            raise PlanError("删除计划需要计划ID")
        self._lookup(plan_id)
        del self._plans[plan_id]
        if self._active == plan_id:
            self._active = None
        log.info("planning.deleted", plan_id=plan_id)
        return f"已删除计划 '{plan_id}'"

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _lookup(self, plan_id: str) -> Plan:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise PlanError(f"计划ID '{plan_id}' 不存在")
        return plan

    def _resolve(self, plan_id: Optional[str]) -> Plan:
        if not plan_id:
            if not self._active:
                raise PlanError("没有活动计划，请提供计划ID")
            plan_id = self._active
        return self._lookup(plan_id)

    @staticmethod
    def _step_texts(steps: list[Any]) -> list[str]:
        if not all(isinstance(s, str) for s in steps):
            raise PlanError("步骤必须是字符串")
        return list(steps)

    @staticmethod
    def _new_id() -> str:
        return f"plan_{time.time_ns()}"
