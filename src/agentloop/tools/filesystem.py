"""
tools/filesystem.py — File Operator Tool

Reads and writes text files on behalf of the agent.

Registered tools:
  - file_operator → read a text file, or write/append text to one
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from agentloop.exceptions import ToolArgumentError, ToolExecutionError
from agentloop.tools.types import BaseTool

# Hard cap: refuse to load files larger than this into the oracle context
DEFAULT_MAX_READ_BYTES = 10 * 1024 * 1024  # 10 MB


class FileOperatorTool(BaseTool):
    name = "file_operator"
    description = (
        "对文件进行读取和保存操作。读取时返回文本内容，"
        "写入时将内容保存到指定路径（可覆盖或追加）。"
    )
    parameters = {
        "type": "object",
        "properties": {
            "operation": {
                "type": "string",
                "description": "(必填) 操作类型。'read'表示读取文件，'write'表示写入文件。",
                "enum": ["read", "write"],
            },
            "file_path": {
                "type": "string",
                "description": "(必填) 文件的路径，包括文件名和扩展名。",
            },
            "content": {
                "type": "string",
                "description": "(写入操作必填) 要保存到文件的内容。",
            },
            "mode": {
                "type": "string",
                "description": "(写入操作可选) 文件打开模式。默认为'w'表示写入。使用'a'表示追加。",
                "enum": ["w", "a"],
                "default": "w",
            },
            "encoding": {
                "type": "string",
                "description": "(可选) 文件编码格式。默认为'utf-8'。",
                "default": "utf-8",
            },
            "max_size": {
                "type": "integer",
                "description": "(读取操作可选) 读取文件的最大大小(字节)。默认为10MB。",
                "default": DEFAULT_MAX_READ_BYTES,
            },
        },
        "required": ["operation", "file_path"],
    }

    def __init__(self, max_read_bytes: int = DEFAULT_MAX_READ_BYTES) -> None:
        self.max_read_bytes = max_read_bytes

    async def execute(
        self,
        operation: str = "",
        file_path: str = "",
        content: Optional[str] = None,
        mode: str = "w",
        encoding: str = "utf-8",
        max_size: Optional[int] = None,
        **_: Any,
    ) -> str:
        if operation not in ("read", "write"):
            raise ToolArgumentError("无效的操作类型参数，必须是'read'或'write'")
        if not file_path:
            raise ToolArgumentError("无效的文件路径参数")

        path = Path(file_path).expanduser().resolve()
        if operation == "read":
            limit = min(max_size or self.max_read_bytes, self.max_read_bytes)
            return self._read(path, encoding, limit)
        return self._write(path, content, mode, encoding)

    @staticmethod
    def _read(path: Path, encoding: str, limit: int) -> str:
        if not path.exists():
            raise ToolExecutionError(f"文件不存在: {path}")
        if not path.is_file():
            raise ToolExecutionError(f"路径不是文件: {path}")
        size = path.stat().st_size
        if size > limit:
            raise ToolExecutionError(f"文件过大，超过最大读取限制 {limit} 字节")
        try:
            return path.read_text(encoding=encoding)
        except UnicodeDecodeError as e:
            raise ToolExecutionError(f"读取文件失败: 不是 {encoding} 编码的文本文件") from e
        except OSError as e:
            raise ToolExecutionError(f"读取文件失败: {e}") from e

    @staticmethod
    def _write(path: Path, content: Optional[str], mode: str, encoding: str) -> str:
        if content is None:
            raise ToolArgumentError("无效的内容参数")
        if mode not in ("w", "a"):
            raise ToolArgumentError(f"无效的文件模式: {mode}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open(mode, encoding=encoding) as f:
                f.write(content)
        except OSError as e:
            raise ToolExecutionError(f"写入文件失败: {e}") from e
        return f"内容已成功保存到 {path}"
