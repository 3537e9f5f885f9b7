"""
observability/logger.py — agentloop Structured Logger

Every module logs through structlog with dotted event names:

    log = get_logger(__name__)
    log.info("agent.step_done", step=3, max_steps=300)

setup_logging() routes those events through stdlib logging into at most
two sinks:

  agentloop.log   rotating file under log_dir, always one JSON object per line
  stderr          JSON or coloured key/value, only when console_output is set

Log lines emitted inside bind_run() carry the run_id and agent name, so the
lines of one request can be pulled out of a shared file, nested executor
runs included.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

import structlog

LOG_FILE_NAME = "agentloop.log"

# SDK transport loggers, capped at WARNING whatever level we run at
_QUIET_LOGGERS = ("httpx", "httpcore", "openai")


# ─────────────────────────────────────────────────────────────────────────────
# Building blocks
# ─────────────────────────────────────────────────────────────────────────────


def _pre_chain() -> list[Any]:
    """Processors applied to structlog events and foreign stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _formatter(renderer: Any) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=_pre_chain(),
    )


def _json_renderer() -> Any:
    return structlog.processors.JSONRenderer(ensure_ascii=False)


def _file_handler(log_dir: str | Path, max_bytes: int, backup_count: int) -> logging.Handler:
    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        filename=path / LOG_FILE_NAME,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(_formatter(_json_renderer()))
    return handler


def _console_handler(json_format: bool) -> logging.Handler:
    # stdout belongs to the REPL's answers
    handler = logging.StreamHandler(sys.stderr)
    renderer = _json_renderer() if json_format else structlog.dev.ConsoleRenderer(colors=True)
    handler.setFormatter(_formatter(renderer))
    return handler


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


def setup_logging(
    level: str = "INFO",
    log_dir: str | Path | None = "./data/logs",
    json_format: bool = True,
    console_output: bool = True,
    max_bytes: int = 50 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Wire structlog into stdlib logging. Safe to call again; the previous
    root handlers are replaced.

    Args:
        level:          Minimum level name for every sink.
        log_dir:        Where agentloop.log rotates. None means no file.
        json_format:    Console renderer choice. The file is JSON regardless.
        console_output: Also log to stderr.
        max_bytes:      Rotation threshold for agentloop.log.
        backup_count:   Rotated files kept next to it.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []
    if log_dir is not None:
        handlers.append(_file_handler(log_dir, max_bytes, backup_count))
    if console_output:
        handlers.append(_console_handler(json_format))
    if not handlers:
        handlers.append(logging.NullHandler())
    for handler in handlers:
        handler.setLevel(numeric_level)

    logging.basicConfig(format="%(message)s", level=numeric_level, handlers=handlers, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=_pre_chain() + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "agentloop", **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Module logger, optionally with fields bound to every line it emits."""
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger


def bind_run(run_id: str, agent: str):
    """
    Context manager tagging every log line inside it with run_id and agent.

    The values live in contextvars, so tasks spawned inside the block see
    them too. Leaving the block restores whatever was bound before, which
    is how an executor's run nests inside an orchestrator's.

        with bind_run(ctx.run_id, agent.name):
            log.info("agent.run_start")
    """
    return structlog.contextvars.bound_contextvars(run_id=run_id, agent=agent)


def clear_run() -> None:
    """Forget every contextvar-bound field in the current context."""
    structlog.contextvars.clear_contextvars()
