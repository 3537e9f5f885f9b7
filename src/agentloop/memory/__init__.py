"""
memory/__init__.py — agentloop conversation memory
"""

from agentloop.memory.message_log import MessageLog

__all__ = ["MessageLog"]
