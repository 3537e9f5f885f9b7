"""
tests/unit/test_logger.py — Structured Logging Tests

Covers:
  - file sink writes one JSON object per line, non-ASCII kept as is
  - bind_run fields attached inside the block only, nesting restores
  - plain stdlib records rendered through the same pipeline
  - console-free setup without a directory installs a NullHandler
  - transport loggers capped at WARNING
"""

from __future__ import annotations

import json
import logging
import sys

import pytest
import structlog

from agentloop.observability.logger import (
    LOG_FILE_NAME,
    bind_run,
    clear_run,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.WARNING)
    clear_run()
    structlog.reset_defaults()


def _lines(tmp_path) -> list[dict]:
    for handler in logging.getLogger().handlers:
        handler.flush()
    text = (tmp_path / LOG_FILE_NAME).read_text(encoding="utf-8")
    return [json.loads(line) for line in text.splitlines() if line]


class TestFileSink:
    def test_json_lines_with_run_fields(self, tmp_path):
        setup_logging(level="INFO", log_dir=tmp_path, console_output=False)
        log = get_logger("agentloop.test_file")

        with bind_run("run-1", "Manus"):
            log.info("agent.step_done", step=1, note="完成")
        log.info("agent.run_end")

        first, second = _lines(tmp_path)
        assert first["event"] == "agent.step_done"
        assert first["level"] == "info"
        assert first["logger"] == "agentloop.test_file"
        assert (first["run_id"], first["agent"], first["step"]) == ("run-1", "Manus", 1)
        assert first["note"] == "完成"
        assert "timestamp" in first
        assert second["event"] == "agent.run_end"
        assert "run_id" not in second
        assert "完成" in (tmp_path / LOG_FILE_NAME).read_text(encoding="utf-8")

    def test_nested_runs_restore_outer_fields(self, tmp_path):
        setup_logging(log_dir=tmp_path, console_output=False)
        log = get_logger("agentloop.test_nested")

        with bind_run("outer", "planner"):
            with bind_run("inner", "executor"):
                log.info("plan.step_start")
            log.info("plan.step_done")

        inner, outer = _lines(tmp_path)
        assert (inner["run_id"], inner["agent"]) == ("inner", "executor")
        assert (outer["run_id"], outer["agent"]) == ("outer", "planner")

    def test_level_filters_file(self, tmp_path):
        setup_logging(level="WARNING", log_dir=tmp_path, console_output=False)
        log = get_logger("agentloop.test_level")
        log.info("tool.exec_done")
        log.warning("tool.exec_error", error="boom")
        assert [line["event"] for line in _lines(tmp_path)] == ["tool.exec_error"]

    def test_stdlib_records_share_the_format(self, tmp_path):
        setup_logging(log_dir=tmp_path, console_output=False)
        with bind_run("run-2", "chat"):
            logging.getLogger("thirdparty").warning("plain %s", "record")
        (line,) = _lines(tmp_path)
        assert line["event"] == "plain record"
        assert line["level"] == "warning"
        assert line["run_id"] == "run-2"


class TestSetup:
    def test_no_sinks_installs_null_handler(self):
        setup_logging(log_dir=None, console_output=False)
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.NullHandler)

    def test_console_goes_to_stderr(self, tmp_path):
        setup_logging(log_dir=None, console_output=True, json_format=False)
        (handler,) = logging.getLogger().handlers
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stderr

    def test_transport_loggers_quietened(self):
        setup_logging(level="DEBUG", log_dir=None, console_output=False)
        for name in ("httpx", "httpcore", "openai"):
            assert logging.getLogger(name).level == logging.WARNING


class TestRunContext:
    def test_clear_run_drops_bound_fields(self):
        structlog.contextvars.bind_contextvars(run_id="stale", agent="x")
        clear_run()
        assert structlog.contextvars.get_contextvars() == {}
