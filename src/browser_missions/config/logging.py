"""Logging configuration for workflow runs.

Executor and scheduler records carry run context as ``extra`` attributes
(``workflow_id``, ``step_id``, ...). The JSON formatter emits them as
top-level keys; the text formatter appends them as a ``[wf-.../step]`` tag.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from browser_missions.utils.validation import sanitize_log_message

# Context attributes set through ``extra=`` by the workflow package
CONTEXT_FIELDS = (
    "workflow_id",
    "step_id",
    "log_type",
    "schedule_type",
    "duration_ms",
)


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class SanitizingFilter(logging.Filter):
    """Redact credentials from log records.

    Mission prompts and agent output are logged verbatim, so passwords and
    API keys typed into a mission would otherwise reach the log stream.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = sanitize_log_message(str(record.msg))
        if record.args:
            record.args = tuple(
                sanitize_log_message(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with run context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(_record_context(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable lines, tagged with the workflow and step when known."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if "workflow_id" not in context:
            return line
        tag = context["workflow_id"]
        if "step_id" in context:
            tag = f"{tag}/{context['step_id']}"
        return f"{line} [{tag}]"


def configure_logging(
    level: str = "INFO", format: str = "text", sanitize_logs: bool = True
) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format ('text' or 'json')
        sanitize_logs: If True, redact sensitive data (API keys, passwords) from logs
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter() if format.lower() == "json" else TextFormatter())
    if sanitize_logs:
        handler.addFilter(SanitizingFilter())
    root_logger.addHandler(handler)

    # APScheduler logs every job run at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
