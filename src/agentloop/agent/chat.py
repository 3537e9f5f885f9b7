"""
agent/chat.py — Single-Shot Agents

ChatAgent and ClassifierAgent wrap a one-step Agent driven by
PlainReplyStrategy. Memory is cleared at the start of every run, so each
call sees only its own user message and unrelated turns never leak.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from agentloop.agent.base import SINGLE_SHOT_MAX_STEPS, Agent
from agentloop.agent.context import RunContext
from agentloop.agent.strategies import PlainReplyStrategy
from agentloop.brain.llm_client import BaseLLMClient
from agentloop.memory.message_log import MessageLog
from agentloop.observability.logger import get_logger

log = get_logger(__name__)


CHAT_SYSTEM_PROMPT = """你是一个友好的AI助手，专门用于聊天对话。你的任务是：

1. 进行自然、友好的对话
2. 回答用户的问题
3. 提供信息和建议
4. 保持轻松愉快的交流氛围

重要提示：
- 你在聊天模式下，不需要使用任何工具
- 直接用文字回答用户的问题
- 保持对话的连贯性和友好性
- 如果用户需要执行具体任务，建议他们切换到任务模式"""

CLASSIFIER_SYSTEM_PROMPT = """你是一个智能输入分类器，需要判断用户输入属于以下哪种类型：

1. **chat（聊天）**：
   - 日常对话、问候、闲聊
   - 询问信息、知识问答
   - 情感表达、观点讨论
   - 不需要执行具体任务的交流
   - 例如："你好"、"今天天气怎么样？"、"什么是人工智能？"

2. **task（任务）**：
   - 需要执行具体操作的请求
   - 文件操作、搜索、计算等
   - 明确的行动指令
   - 例如："帮我搜索关于机器学习的资料"、"保存这个文件"、"计算一下这个数据"

3. **plan（计划）**：
   - 复杂的多步骤任务
   - 需要制定详细计划的项目
   - 包含"计划"、"规划"、"方案"等关键词
   - 例如："制定一个学习计划"、"规划项目开发流程"、"plan:制定营销策略"

请仔细分析用户输入，只返回以下三个词之一：chat、task、plan
不要返回任何其他内容，不要解释原因。"""

PLAN_KEYWORDS = ("plan:", "计划", "规划", "方案", "策略", "流程", "步骤")
TASK_KEYWORDS = ("帮我", "搜索", "查找", "保存", "下载", "计算", "执行", "处理", "分析")
CHAT_KEYWORDS = ("你好", "hello", "hi", "什么是", "为什么", "怎么样", "如何")
SHORT_INPUT_CHARS = 20


class InputType(str, Enum):
    CHAT = "chat"
    TASK = "task"
    PLAN = "plan"


class _SingleShot:
    """Shared shape: a one-step Agent whose memory is wiped before each run."""

    def __init__(self, name: str, description: str, llm: BaseLLMClient, system_prompt: str) -> None:
        self.agent = Agent(
            name,
            llm,
            PlainReplyStrategy(system_prompt),
            description=description,
            memory=MessageLog(),
            max_steps=SINGLE_SHOT_MAX_STEPS,
        )

    @property
    def name(self) -> str:
        return self.agent.name

    @property
    def system_prompt(self) -> Optional[str]:
        return self.agent.strategy.system_prompt

    @system_prompt.setter
    def system_prompt(self, value: str) -> None:
        self.agent.strategy.system_prompt = value

    async def _ask(self, text: str, ctx: Optional[RunContext]) -> str:
        self.agent.reset(clear_memory=True)
        return await self.agent.run(text, ctx)


class ChatAgent(_SingleShot):
    """Tool-free conversation. One oracle call per run."""

    def __init__(self, llm: BaseLLMClient, name: str = "chat") -> None:
        super().__init__(name, "聊天代理 - 专门用于日常对话和问答", llm, CHAT_SYSTEM_PROMPT)

    async def run(self, request: str, ctx: Optional[RunContext] = None) -> str:
        log.info("chat.run_start", chars=len(request))
        reply = await self._ask(request, ctx)
        log.debug("chat.run_done", chars=len(reply))
        return reply


class ClassifierAgent(_SingleShot):
    """Labels user input as chat, task or plan."""

    def __init__(self, llm: BaseLLMClient, name: str = "classifier") -> None:
        super().__init__(name, "输入分类代理 - 判断用户输入是聊天、任务还是计划", llm, CLASSIFIER_SYSTEM_PROMPT)

    async def classify(self, text: str, ctx: Optional[RunContext] = None) -> InputType:
        """
        Ask the oracle for a label. Anything other than exactly one of
        chat/task/plan (after trimming and lower-casing) falls back to the
        keyword rules in fallback_classify(). Oracle errors propagate.
        """
        answer = (await self._ask(text, ctx)).strip().lower()
        try:
            label = InputType(answer)
        except ValueError:
            label = fallback_classify(text)
            log.warning("classifier.invalid_answer", answer=answer[:50], fallback=label.value)
            return label

        log.info("classifier.classified", label=label.value)
        return label


def fallback_classify(text: str) -> InputType:
    """Keyword rules: plan keywords, then task, then chat, then input length."""
    lowered = text.lower()
    if any(k in lowered for k in PLAN_KEYWORDS):
        return InputType.PLAN
    if any(k in lowered for k in TASK_KEYWORDS):
        return InputType.TASK
    if any(k in lowered for k in CHAT_KEYWORDS):
        return InputType.CHAT
    return InputType.CHAT if len(text) < SHORT_INPUT_CHARS else InputType.TASK
