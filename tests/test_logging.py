"""Tests for logging configuration and log sanitizing."""

import json
import logging

import pytest

from browser_missions.config.logging import (
    JSONFormatter,
    SanitizingFilter,
    TextFormatter,
    configure_logging,
)
from browser_missions.utils import sanitize_log_message
from browser_missions.workflow import Workflow, WorkflowExecutor
from conftest import ScriptedRunner


def _record(msg, *args, **extra):
    record = logging.LogRecord("browser_missions.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


class TestSanitizeLogMessage:
    """Tests for credential redaction."""

    @pytest.mark.parametrize(
        "secret",
        [
            "sk-ant-" + "a" * 45,
            "sk-" + "b" * 30,
            "AIza" + "c" * 35,
        ],
    )
    def test_api_keys(self, secret):
        assert sanitize_log_message(f"key {secret} end") == "key [REDACTED_API_KEY] end"

    def test_password_in_prompt(self):
        message = sanitize_log_message("Log in with user bob and password: hunter2")
        assert "hunter2" not in message
        assert "password=[REDACTED]" in message

    def test_extra_patterns(self):
        assert sanitize_log_message("card 4111", [r"\d{4}"]) == "card [REDACTED]"

    def test_plain_text_untouched(self):
        assert sanitize_log_message("Open example.com") == "Open example.com"


class TestFormatters:
    """Tests for JSON and text formatters."""

    def test_json_formatter(self):
        record = _record("Running %s", "wf-1", workflow_id="wf-1", step_id="a")
        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Running wf-1"
        assert data["level"] == "INFO"
        assert data["logger"] == "browser_missions.test"
        assert data["workflow_id"] == "wf-1"
        assert data["step_id"] == "a"
        assert "duration_ms" not in data

    def test_text_formatter(self):
        line = TextFormatter().format(_record("hello"))
        assert line.endswith(" - browser_missions.test - INFO - hello")

    def test_text_formatter_tags_workflow_and_step(self):
        line = TextFormatter().format(_record("hello", workflow_id="wf-1", step_id="a"))
        assert line.endswith(" - INFO - hello [wf-1/a]")
        line = TextFormatter().format(_record("hello", workflow_id="wf-1"))
        assert line.endswith(" - INFO - hello [wf-1]")

    def test_json_formatter_skips_unset_context(self):
        record = _record("tick", workflow_id="wf-1", step_id=None, duration_ms=0)
        data = json.loads(JSONFormatter().format(record))
        assert data["duration_ms"] == 0
        assert "step_id" not in data
        assert "schedule_type" not in data

    def test_sanitizing_filter(self):
        record = _record("token=abc123 used for %s", "password=secret")
        assert SanitizingFilter().filter(record)
        assert record.getMessage() == "token=[REDACTED] used for password=[REDACTED]"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_handler(self, restore_root_logger):
        configure_logging(level="DEBUG", format="json")

        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        handler = root.handlers[0]
        assert isinstance(handler.formatter, JSONFormatter)
        assert any(isinstance(f, SanitizingFilter) for f in handler.filters)
        assert logging.getLogger("apscheduler").level == logging.WARNING

    def test_text_without_sanitizing(self, restore_root_logger):
        configure_logging(format="text", sanitize_logs=False)

        handler = restore_root_logger.handlers[0]
        assert isinstance(handler.formatter, TextFormatter)
        assert handler.filters == []


class TestRunContext:
    """Tests that executor records carry run context through the JSON formatter."""

    @pytest.mark.asyncio
    async def test_step_records(self, caplog):
        workflow = Workflow(name="Steps")
        step = workflow.add_step("Open", "Open the page")
        executor = WorkflowExecutor(workflow, ScriptedRunner({"Open the page": True}), retry_delay=0)

        with caplog.at_level(logging.DEBUG, logger="browser_missions.workflow.executor"):
            result = await executor.execute()

        assert result.success
        formatter = JSONFormatter()
        payloads = [json.loads(formatter.format(r)) for r in caplog.records]
        assert all(p["workflow_id"] == workflow.id for p in payloads)

        step_payloads = [p for p in payloads if p.get("step_id") == step.id]
        assert {p["log_type"] for p in step_payloads} >= {"info", "success"}

        [finished] = [p for p in payloads if "duration_ms" in p]
        assert finished["message"].startswith(f"Workflow {workflow.id} finished: success")
        assert finished["step_id"] == step.id
        assert finished["duration_ms"] >= 0
