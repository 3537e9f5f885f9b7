"""
tests/unit/test_chat_agents.py — Single-Shot Agent Tests

Covers:
  - ChatAgent: one oracle call, no tools, memory wiped between runs
  - ClassifierAgent: valid labels, invalid answers fall back to keywords
  - fallback_classify keyword precedence and length rule
"""

from __future__ import annotations

import pytest

from agentloop.agent.chat import (
    CHAT_SYSTEM_PROMPT,
    ChatAgent,
    ClassifierAgent,
    InputType,
    fallback_classify,
)
from agentloop.brain.llm_client import LLMError
from agentloop.exceptions import StepExecutionError

from fakes import ScriptedLLM, reply


class TestChatAgent:
    @pytest.mark.asyncio
    async def test_reply_returned(self):
        llm = ScriptedLLM([reply("你好！")])
        chat = ChatAgent(llm)
        assert await chat.run("你好") == "你好！"
        sent = llm.calls[0]
        assert sent["tools"] is None
        assert sent["system_messages"][0].content == CHAT_SYSTEM_PROMPT
        assert chat.agent.max_steps == 1

    @pytest.mark.asyncio
    async def test_turns_do_not_leak(self):
        llm = ScriptedLLM([reply("one"), reply("two")])
        chat = ChatAgent(llm)
        await chat.run("first")
        await chat.run("second")
        assert [m.content for m in llm.calls[1]["messages"]] == ["second"]

    @pytest.mark.asyncio
    async def test_oracle_error_propagates(self):
        chat = ChatAgent(ScriptedLLM([LLMError("down")]))
        with pytest.raises(StepExecutionError, match="down"):
            await chat.run("hi")


class TestClassifierAgent:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("answer,expected", [
        ("chat", InputType.CHAT),
        ("  TASK\n", InputType.TASK),
        ("Plan", InputType.PLAN),
    ])
    async def test_valid_labels(self, answer, expected):
        classifier = ClassifierAgent(ScriptedLLM([reply(answer)]))
        assert await classifier.classify("anything at all") == expected

    @pytest.mark.asyncio
    async def test_invalid_answer_uses_fallback(self):
        classifier = ClassifierAgent(ScriptedLLM([reply("I think this is a plan")]))
        assert await classifier.classify("帮我制定一个学习计划") == InputType.PLAN

    @pytest.mark.asyncio
    async def test_classifier_memory_reset_each_call(self):
        llm = ScriptedLLM([reply("chat"), reply("task")])
        classifier = ClassifierAgent(llm)
        await classifier.classify("a")
        await classifier.classify("b")
        assert [m.content for m in llm.calls[1]["messages"]] == ["b"]


class TestFallbackClassify:
    @pytest.mark.parametrize("text,expected", [
        ("plan: 营销", InputType.PLAN),
        ("PLAN: launch", InputType.PLAN),
        ("规划项目开发流程", InputType.PLAN),
        ("帮我搜索机器学习资料", InputType.TASK),
        ("请分析这个数据", InputType.TASK),
        ("你好呀", InputType.CHAT),
        ("hello", InputType.CHAT),
        ("ok", InputType.CHAT),
        ("please tell the team the meeting moved", InputType.TASK),
    ])
    def test_rules(self, text, expected):
        assert fallback_classify(text) == expected

    def test_plan_keyword_beats_task_keyword(self):
        assert fallback_classify("帮我写一个计划") == InputType.PLAN
