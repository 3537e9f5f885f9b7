"""
tools/terminate.py — Terminate Tool

Lets the oracle end the interaction explicitly. The tool itself only
validates and echoes the status; agents that list `terminate` among their
special tools switch to FINISHED after a successful call.
"""

from __future__ import annotations

from typing import Optional

from agentloop.exceptions import ToolArgumentError
from agentloop.tools.types import BaseTool

_VALID_STATUSES = ("success", "failure")


class TerminateTool(BaseTool):
    name = "terminate"
    description = "当请求满足或助手无法继续任务时终止交互"
    parameters = {
        "type": "object",
        "properties": {
            "status": {
                "type": "string",
                "description": "交互的完成状态",
                "enum": list(_VALID_STATUSES),
            },
            "message": {
                "type": "string",
                "description": "终止消息（可选）",
            },
        },
        "required": ["status"],
    }

    async def execute(self, status: str = "", message: Optional[str] = None, **_) -> str:
        if not status:
            raise ToolArgumentError("无效的状态参数")
        if status not in _VALID_STATUSES:
            raise ToolArgumentError("状态必须是 'success' 或 'failure'")
        result = f"交互已完成，状态: {status}"
        if message:
            result += f"\n{message}"
        return result
