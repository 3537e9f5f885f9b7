"""
tests/unit/test_planning_tool.py — Plan Tracker Tests

The rendered text is parsed back by the orchestrator, so these tests pin
the format byte for byte.

Covers:
  - render_plan exact output (progress + status lines, marks, notes)
  - create / update / list / get / set_active / mark_step / delete
  - update keeps status and note of unchanged steps
  - error messages for every invalid command
  - parse_progress and structured queries
"""

from __future__ import annotations

import pytest

from agentloop.exceptions import PlanError
from agentloop.tools.planning import (
    STEP_LINE_RE,
    Plan,
    PlanningTool,
    PlanStep,
    StepStatus,
    parse_progress,
    render_plan,
)


async def _create(tool: PlanningTool, plan_id: str = "p1", title: str = "T", steps=("a", "b")) -> str:
    return await tool.execute(command="create", plan_id=plan_id, title=title, steps=list(steps))


class TestRender:
    def test_exact_format_fresh_plan(self):
        plan = Plan(plan_id="p1", title="T", steps=[PlanStep(text="a"), PlanStep(text="b")])
        assert render_plan(plan) == (
            "计划: T (ID: p1)\n"
            + "=" * 19 + "\n\n"
            "进度: 0/2 步骤已完成 (0.0%)\n"
            "状态: 0 已完成, 0 进行中, 0 已阻塞, 2 未开始\n\n"
            "步骤:\n"
            "1. [ ] a\n"
            "2. [ ] b\n"
        )

    def test_marks_and_notes(self):
        plan = Plan(plan_id="p1", title="T", steps=[
            PlanStep(text="a", status=StepStatus.COMPLETED, note="done"),
            PlanStep(text="b", status=StepStatus.IN_PROGRESS),
            PlanStep(text="c", status=StepStatus.BLOCKED, note="stuck"),
            PlanStep(text="d"),
        ])
        text = render_plan(plan)
        assert "进度: 1/4 步骤已完成 (25.0%)\n" in text
        assert "状态: 1 已完成, 1 进行中, 1 已阻塞, 1 未开始\n" in text
        assert text.endswith(
            "1. [✓] a\n"
            "   备注: done\n"
            "2. [→] b\n"
            "3. [!] c\n"
            "   备注: stuck\n"
            "4. [ ] d\n"
        )

    def test_underline_counts_utf8_bytes(self):
        plan = Plan(plan_id="plan_1", title="学习计划", steps=[PlanStep(text="x")])
        header, underline = render_plan(plan).split("\n")[:2]
        assert len(underline) == len((header + "\n").encode("utf-8"))
        assert set(underline) == {"="}

    def test_step_lines_match_scan_pattern(self):
        plan = Plan(plan_id="p", title="t", steps=[PlanStep(text="[SEARCH] find X")])
        m = STEP_LINE_RE.search(render_plan(plan))
        assert m.groups() == ("1", "[ ]", "[SEARCH] find X")

    def test_multiline_note_and_text_indented(self):
        plan = Plan(plan_id="p", title="t", steps=[
            PlanStep(text="a", status=StepStatus.COMPLETED, note="结果: 已完成:\n1. [→] a\n2. [ ] b"),
            PlanStep(text="b\n3. [ ] c"),
        ])
        text = render_plan(plan)
        assert text.endswith(
            "1. [✓] a\n"
            "   备注: 结果: 已完成:\n"
            "      1. [→] a\n"
            "      2. [ ] b\n"
            "2. [ ] b\n"
            "      3. [ ] c\n"
        )
        assert [m.group(1, 2) for m in STEP_LINE_RE.finditer(text)] == [("1", "[✓]"), ("2", "[ ]")]

    def test_parse_progress(self):
        plan = Plan(plan_id="p", title="t", steps=[PlanStep(text="a", status=StepStatus.COMPLETED), PlanStep(text="b")])
        assert parse_progress(render_plan(plan)) == (1, 2)
        assert parse_progress("no progress here") is None


class TestCommands:
    @pytest.mark.asyncio
    async def test_create_returns_rendering_and_activates(self):
        tool = PlanningTool()
        text = await _create(tool)
        assert text.startswith("计划: T (ID: p1)\n")
        assert tool.active_plan_id == "p1"
        assert tool.step_count() == 2

    @pytest.mark.asyncio
    async def test_create_generates_id(self):
        tool = PlanningTool()
        await tool.execute(command="create", title="T", steps=["a"])
        assert tool.active_plan_id.startswith("plan_")

    @pytest.mark.asyncio
    async def test_create_requires_title_and_steps(self):
        tool = PlanningTool()
        with pytest.raises(PlanError, match="创建计划需要标题"):
            await tool.execute(command="create", steps=["a"])
        with pytest.raises(PlanError, match="创建计划需要步骤列表"):
            await tool.execute(command="create", title="T", steps=[])

    @pytest.mark.asyncio
    async def test_mark_step_progress_line(self):
        tool = PlanningTool()
        await _create(tool)
        text = await tool.execute(command="mark_step", plan_id="p1", step_index=0, step_status="completed")
        assert "进度: 1/2 步骤已完成 (50.0%)" in text
        assert "1. [✓] a" in text

    @pytest.mark.asyncio
    async def test_mark_step_uses_active_plan_and_notes(self):
        tool = PlanningTool()
        await _create(tool)
        await tool.execute(command="mark_step", step_index=1, step_status="blocked", step_notes="oops")
        plan = tool.get_plan()
        assert plan.steps[1].status == StepStatus.BLOCKED
        assert plan.steps[1].note == "oops"

    @pytest.mark.asyncio
    async def test_mark_step_accepts_singular_note(self):
        tool = PlanningTool()
        await _create(tool)
        await tool.execute(command="mark_step", step_index=0, step_status="in_progress", step_note="working")
        assert tool.get_plan().steps[0].note == "working"

    @pytest.mark.asyncio
    async def test_mark_step_errors(self):
        tool = PlanningTool()
        with pytest.raises(PlanError, match="没有活动计划，请提供计划ID"):
            await tool.execute(command="mark_step", step_index=0, step_status="completed")
        await _create(tool)
        with pytest.raises(PlanError, match=r"步骤索引 5 超出范围 \(0-1\)"):
            await tool.execute(command="mark_step", step_index=5, step_status="completed")
        with pytest.raises(PlanError, match="无效的步骤状态: done"):
            await tool.execute(command="mark_step", step_index=0, step_status="done")

    @pytest.mark.asyncio
    async def test_update_preserves_unchanged_steps(self):
        tool = PlanningTool()
        await _create(tool, steps=("a", "b", "c"))
        await tool.execute(command="mark_step", step_index=0, step_status="completed", step_notes="n1")
        await tool.execute(command="mark_step", step_index=1, step_status="completed")

        await tool.execute(command="update", plan_id="p1", title="T2", steps=["a", "x", "c", "d"])
        plan = tool.get_plan("p1")
        assert plan.title == "T2"
        assert [(s.text, s.status, s.note) for s in plan.steps] == [
            ("a", StepStatus.COMPLETED, "n1"),
            ("x", StepStatus.NOT_STARTED, ""),
            ("c", StepStatus.NOT_STARTED, ""),
            ("d", StepStatus.NOT_STARTED, ""),
        ]

    @pytest.mark.asyncio
    async def test_list_and_set_active(self):
        tool = PlanningTool()
        assert await tool.execute(command="list") == "没有可用的计划"
        await _create(tool, plan_id="p1", title="One", steps=("a",))
        await _create(tool, plan_id="p2", title="Two", steps=("a", "b"))
        assert await tool.execute(command="list") == (
            "可用计划:\n\n"
            "- p1: One (1 步骤)\n"
            "- p2: Two (当前活动) (2 步骤)\n"
        )
        assert await tool.execute(command="set_active", plan_id="p1") == "已将计划 'p1' 设置为活动计划"
        assert tool.active_plan_id == "p1"

    @pytest.mark.asyncio
    async def test_get_unknown_plan(self):
        tool = PlanningTool()
        with pytest.raises(PlanError, match="计划ID 'zz' 不存在"):
            await tool.execute(command="get", plan_id="zz")

    @pytest.mark.asyncio
    async def test_delete_clears_active(self):
        tool = PlanningTool()
        await _create(tool)
        assert await tool.execute(command="delete", plan_id="p1") == "已删除计划 'p1'"
        assert tool.active_plan_id is None
        with pytest.raises(PlanError):
            await tool.execute(command="get")

    @pytest.mark.asyncio
    async def test_unknown_and_missing_command(self):
        tool = PlanningTool()
        with pytest.raises(PlanError, match="未知命令: explode"):
            await tool.execute(command="explode")
        with pytest.raises(PlanError, match="无效的命令参数"):
            await tool.execute()

    @pytest.mark.asyncio
    async def test_get_plan_is_a_copy(self):
        tool = PlanningTool()
        await _create(tool)
        copy = tool.get_plan()
        copy.steps[0].status = StepStatus.COMPLETED
        assert tool.get_plan().steps[0].status == StepStatus.NOT_STARTED
