"""
tests/unit/test_strategies.py — Think/Act Strategy Tests

Covers:
  - think sends system prompt, tool definitions and tool_choice=auto
  - placeholders reserved before act, filled in invocation order
  - unknown tool / bad JSON / schema mismatch / tool exception are recorded,
    the batch continues
  - terminate finishes the agent
  - no tool calls → reply content or the idle text
  - PlainReplyStrategy: one call without tools, FINISHED
"""

from __future__ import annotations

import pytest

from agentloop.agent import Agent, AgentState, PlainReplyStrategy, RunContext, ToolCallStrategy
from agentloop.agent.strategies import NO_ACTION_RESULT
from agentloop.brain.types import Message, Role, ToolChoice
from agentloop.exceptions import StrategyError
from agentloop.tools import ToolRegistry
from agentloop.tools.terminate import TerminateTool

from fakes import EchoTool, FailingTool, ScriptedLLM, call, reply


def _setup(responses, tools=None):
    echo = EchoTool()
    registry = ToolRegistry(tools if tools is not None else [echo, FailingTool(), TerminateTool()])
    llm = ScriptedLLM(responses)
    strategy = ToolCallStrategy(registry, "you are a tester")
    agent = Agent("s", llm, strategy, max_steps=3)
    agent.memory.append(Message.user("go"))
    return agent, strategy, llm, echo


class TestThink:
    @pytest.mark.asyncio
    async def test_think_request_shape(self):
        agent, strategy, llm, _ = _setup([reply("ok")])
        acted = await strategy.think(agent, RunContext())
        assert acted is False
        sent = llm.calls[0]
        assert [m.content for m in sent["system_messages"]] == ["you are a tester"]
        assert [m.content for m in sent["messages"]] == ["go"]
        assert sent["tool_choice"] == ToolChoice.AUTO
        assert [t["function"]["name"] for t in sent["tools"]] == ["echo", "broken", "terminate"]

    @pytest.mark.asyncio
    async def test_think_reserves_placeholders(self):
        agent, strategy, _, _ = _setup([reply("", call("echo", {"text": "a"}, "t1"), call("echo", {"text": "b"}, "t2"))])
        assert await strategy.think(agent, RunContext()) is True
        msgs = agent.memory.messages
        assert msgs[1].role == Role.ASSISTANT and len(msgs[1].tool_calls) == 2
        assert [(m.role, m.tool_call_id, m.content) for m in msgs[2:]] == [
            (Role.TOOL, "t1", ""),
            (Role.TOOL, "t2", ""),
        ]

    @pytest.mark.asyncio
    async def test_think_failure_wrapped(self):
        agent, strategy, _, _ = _setup([])
        with pytest.raises(StrategyError, match="思考失败"):
            await strategy.step(agent, RunContext())


class TestAct:
    @pytest.mark.asyncio
    async def test_results_in_invocation_order(self):
        agent, strategy, _, echo = _setup([
            reply("", call("echo", {"text": "a"}, "t1"), call("echo", {"text": "b"}, "t2")),
        ])
        text = await strategy.step(agent, RunContext())
        assert text == "执行了 2 个工具调用:\n工具 echo 执行结果: echo: a\n工具 echo 执行结果: echo: b"
        assert echo.calls == ["a", "b"]
        tools = [m for m in agent.memory if m.role == Role.TOOL]
        assert [(m.tool_call_id, m.content) for m in tools] == [("t1", "echo: a"), ("t2", "echo: b")]
        assert agent.memory.pending_tool_calls == frozenset()

    @pytest.mark.asyncio
    async def test_failures_recorded_batch_continues(self):
        agent, strategy, _, echo = _setup([
            reply(
                "",
                call("nope", {}, "t1"),
                call("echo", "{not json", "t2"),
                call("echo", {"text": 5}, "t3"),
                call("broken", {}, "t4"),
                call("echo", {"text": "still runs"}, "t5"),
            ),
        ])
        text = await strategy.step(agent, RunContext())
        lines = text.split("\n")
        assert lines[0] == "执行了 5 个工具调用:"
        assert lines[1].startswith("找不到工具 nope: ")
        assert lines[2].startswith("解析工具参数失败: ")
        assert lines[3].startswith("解析工具参数失败: ")
        assert lines[4] == "执行工具失败: disk on fire"
        assert lines[5] == "工具 echo 执行结果: echo: still runs"
        assert echo.calls == ["still runs"]

        contents = {m.tool_call_id: m.content for m in agent.memory if m.role == Role.TOOL}
        assert contents["t4"] == "执行工具失败: disk on fire"
        assert contents["t5"] == "echo: still runs"
        assert agent.state != AgentState.FINISHED

    @pytest.mark.asyncio
    async def test_terminate_finishes_agent(self):
        agent, strategy, _, _ = _setup([reply("", call("terminate", {"status": "success"}))])
        text = await strategy.step(agent, RunContext())
        assert "交互已完成，状态: success" in text
        assert agent.state == AgentState.FINISHED

    @pytest.mark.asyncio
    async def test_failed_terminate_does_not_finish(self):
        agent, strategy, _, _ = _setup([reply("", call("terminate", {"status": "maybe"}))])
        await strategy.step(agent, RunContext())
        assert agent.state != AgentState.FINISHED

    @pytest.mark.asyncio
    async def test_repeated_call_id_skipped(self):
        agent, strategy, _, echo = _setup([
            reply(
                "",
                call("echo", {"text": "a"}, "t1"),
                call("echo", {"text": "b"}, "t1"),
                call("echo", {"text": "c"}, "t2"),
            ),
        ])
        text = await strategy.step(agent, RunContext())
        assert text == (
            "执行了 3 个工具调用:\n"
            "工具 echo 执行结果: echo: a\n"
            "工具调用 ID 重复，已跳过: echo (t1)\n"
            "工具 echo 执行结果: echo: c"
        )
        assert echo.calls == ["a", "c"]
        tools = [m for m in agent.memory if m.role == Role.TOOL]
        assert [(m.tool_call_id, m.content) for m in tools] == [("t1", "echo: a"), ("t2", "echo: c")]
        assert agent.memory.pending_tool_calls == frozenset()

    @pytest.mark.asyncio
    async def test_act_without_tool_calls_is_an_error(self):
        agent, strategy, _, _ = _setup([])
        with pytest.raises(Exception, match="没有找到工具调用"):
            await strategy.act(agent, RunContext())


class TestIdleResult:
    @pytest.mark.asyncio
    async def test_reply_content_returned(self):
        agent, strategy, _, _ = _setup([reply("final answer")])
        assert await strategy.step(agent, RunContext()) == "final answer"

    @pytest.mark.asyncio
    async def test_empty_reply_gives_idle_text(self):
        agent, strategy, _, _ = _setup([reply("")])
        assert await strategy.step(agent, RunContext()) == NO_ACTION_RESULT


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_tool_then_terminate_run(self):
        agent, _, llm, _ = _setup([
            reply("", call("echo", {"text": "x"}, "t1")),
            reply("", call("terminate", {"status": "success", "message": "bye"}, "t2")),
        ])
        agent.memory.clear()
        result = await agent.run("please echo")
        assert result.startswith("步骤 1: 执行了 1 个工具调用:")
        assert "步骤 2: 执行了 1 个工具调用:\n工具 terminate 执行结果: 交互已完成，状态: success\nbye" in result
        assert "终止" not in result
        # second oracle call saw the filled tool message
        second = llm.calls[1]["messages"]
        assert second[-1].role == Role.TOOL and second[-1].content == "echo: x"


class TestPlainReply:
    @pytest.mark.asyncio
    async def test_single_call_without_tools(self):
        llm = ScriptedLLM([reply("hello there")])
        agent = Agent("chat", llm, PlainReplyStrategy("be nice"), max_steps=1)
        result = await agent.run("hi")
        assert result == "hello there"
        assert len(llm.calls) == 1
        assert llm.calls[0]["tools"] is None
        assert [m.content for m in llm.calls[0]["system_messages"]] == ["be nice"]
        assert agent.memory.last().content == "hello there"
        assert agent.state == AgentState.IDLE
