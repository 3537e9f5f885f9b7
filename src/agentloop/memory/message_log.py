"""
memory/message_log.py — Agent Conversation Log

Append-only, ordered record of the turns of one agent's conversation.
A log is owned by exactly one Agent and is never shared between agents,
so it carries no locking of its own.

Messages are immutable. The only in-place change the log allows is
answering a pending tool placeholder: the empty tool message reserved by
the think phase is swapped for the real result at the same position.
"""

from __future__ import annotations

from typing import Iterator, Optional

from agentloop.brain.types import Message, Role


class MessageLog:
    """Ordered conversation history for a single agent."""

    def __init__(self, messages: Optional[list[Message]] = None) -> None:
        self._messages: list[Message] = list(messages or [])
        # tool_call_id → index of its unanswered placeholder
        self._pending: dict[str, int] = {}

    # ── Appending ─────────────────────────────────────────────────────────────

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def extend(self, messages: list[Message]) -> None:
        for m in messages:
            self.append(m)

    def reserve_tool_result(self, tool_call_id: str, name: Optional[str] = None) -> None:
        """
        Append an empty tool message that fill_tool_result() will answer.

        Raises ValueError if tool_call_id already has an unanswered placeholder.
        """
        if tool_call_id in self._pending:
            raise ValueError(f"tool call {tool_call_id!r} already has a pending result")
        self._pending[tool_call_id] = len(self._messages)
        self._messages.append(Message.tool_result(tool_call_id, "", name=name))

    def fill_tool_result(self, tool_call_id: str, content: str, name: Optional[str] = None) -> Message:
        """
        Record the result of a tool invocation.

        Replaces the pending placeholder for tool_call_id when there is one,
        otherwise appends a new tool message. Returns the stored message.
        """
        message = Message.tool_result(tool_call_id, content, name=name)
        index = self._pending.pop(tool_call_id, None)
        if index is None:
            self._messages.append(message)
        else:
            self._messages[index] = message
        return message

    def clear(self) -> None:
        self._messages.clear()
        self._pending.clear()

    # ── Reading ───────────────────────────────────────────────────────────────

    @property
    def messages(self) -> tuple[Message, ...]:
        """Snapshot of the log; later appends do not show up in it."""
        return tuple(self._messages)

    def since(self, index: int) -> tuple[Message, ...]:
        return tuple(self._messages[index:])

    def last(self, role: Optional[Role] = None) -> Optional[Message]:
        for message in reversed(self._messages):
            if role is None or message.role == role:
                return message
        return None

    def last_with_tool_calls(self) -> Optional[Message]:
        """Most recent assistant message that requested tool invocations."""
        for message in reversed(self._messages):
            if message.role == Role.ASSISTANT and message.tool_calls:
                return message
        return None

    @property
    def pending_tool_calls(self) -> frozenset[str]:
        return frozenset(self._pending)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def __bool__(self) -> bool:
        # an empty log is still a valid log object
        return True

    def __repr__(self) -> str:
        return f"<MessageLog messages={len(self._messages)} pending={len(self._pending)}>"
