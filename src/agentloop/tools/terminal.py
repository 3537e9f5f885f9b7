"""
tools/terminal.py — Terminal Execution Tool

Runs a shell command in a subprocess with a bounded wait. Output is
captured, truncated and returned as a dict (stdout, stderr, exit_code,
success). The subprocess environment is stripped of anything that looks
like a credential.

Registered tools:
  - terminal_exec → run a shell command, capture output
"""

from __future__ import annotations

import asyncio
import os
import re
from pathlib import Path
from typing import Any, Optional

from agentloop.exceptions import ToolArgumentError, ToolExecutionError
from agentloop.observability.logger import get_logger
from agentloop.tools.types import BaseTool, truncate

log = get_logger(__name__)

DEFAULT_TIMEOUT = 30

_SECRET_ENV_PATTERNS: list[re.Pattern] = [
    re.compile(p, re.IGNORECASE)
    for p in [
        r"API[_-]?KEY",
        r"SECRET",
        r"PASSWORD",
        r"PASSWD",
        r"TOKEN",
        r"AUTH",
        r"CREDENTIAL",
        r"PRIVATE[_-]?KEY",
        r"ACCESS[_-]?KEY",
        r"OPENAI",
        r"AWS[_-]",
    ]
]


def _safe_env() -> dict[str, str]:
    """Copy of os.environ without secret-looking variables."""
    return {
        key: value
        for key, value in os.environ.items()
        if not any(pat.search(key) for pat in _SECRET_ENV_PATTERNS)
    }


class TerminalTool(BaseTool):
    """
    `terminal_exec`: bounded shell command execution.

    The timeout requested by the oracle is clamped to max_timeout_seconds.
    A command that outlives its timeout is killed and reported as a
    ToolExecutionError.
    """

    name = "terminal_exec"
    description = (
        "执行终端命令并返回标准输出、标准错误和退出码。"
        "适用于查看文件、运行脚本、检查环境等操作。"
    )
    parameters = {
        "type": "object",
        "properties": {
            "command": {
                "type": "string",
                "description": "(必填) 要执行的命令",
            },
            "working_directory": {
                "type": "string",
                "description": "(可选) 命令执行的工作目录",
            },
            "timeout": {
                "type": "integer",
                "description": "(可选) 命令超时时间（秒），默认30",
                "default": DEFAULT_TIMEOUT,
            },
            "capture_stderr": {
                "type": "boolean",
                "description": "(可选) 是否捕获标准错误，默认true",
                "default": True,
            },
        },
        "required": ["command"],
    }

    def __init__(
        self,
        working_dir: str = "./data/agent_files",
        default_timeout: int = DEFAULT_TIMEOUT,
        max_timeout: int = 300,
        max_output_chars: int = 8000,
    ) -> None:
        self.working_dir = working_dir
        self.default_timeout = default_timeout
        self.max_timeout = max_timeout
        self.max_output_chars = max_output_chars

    async def execute(
        self,
        command: str = "",
        working_directory: Optional[str] = None,
        timeout: Optional[int] = None,
        capture_stderr: bool = True,
        **_: Any,
    ) -> dict[str, Any]:
        if not command.strip():
            raise ToolArgumentError("无效的命令参数")

        cwd = Path(working_directory or self.working_dir).expanduser().resolve()
        cwd.mkdir(parents=True, exist_ok=True)
        limit = min(max(int(timeout or self.default_timeout), 1), self.max_timeout)

        log.info("terminal.exec_start", command=command, cwd=str(cwd), timeout=limit)
        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE if capture_stderr else asyncio.subprocess.DEVNULL,
                cwd=str(cwd),
                env={**_safe_env(), "PYTHONUNBUFFERED": "1"},
            )
        except OSError as e:
            raise ToolExecutionError(f"无法启动进程: {e}") from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=limit)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.communicate()
            log.warning("terminal.timeout", command=command, timeout=limit)
            raise ToolExecutionError(f"命令执行超时 ({limit} 秒)") from None
        except asyncio.CancelledError:
            # the run was cancelled; do not leave the child behind
            proc.kill()
            await proc.wait()
            raise

        stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
        stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")

        log.info("terminal.exec_done", command=command, exit_code=proc.returncode)
        return {
            "command": command,
            "working_directory": str(cwd),
            "exit_code": proc.returncode,
            "stdout": truncate(stdout, self.max_output_chars),
            "stderr": truncate(stderr, self.max_output_chars),
            "success": proc.returncode == 0,
        }
