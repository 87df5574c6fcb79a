"""Input sanitizing helpers used by logging."""

from __future__ import annotations

import re

# Default sensitive patterns
_DEFAULT_PATTERNS = [
    (r"sk-ant-[a-zA-Z0-9_-]{40,}", "[REDACTED_API_KEY]"),  # Anthropic keys
    (r"sk-[a-zA-Z0-9]{20,}", "[REDACTED_API_KEY]"),  # OpenAI keys
    (r"AIza[0-9A-Za-z_-]{35}", "[REDACTED_API_KEY]"),  # Google keys
    (r"\b\d{8,10}:[A-Za-z0-9_-]{35}\b", "[REDACTED_BOT_TOKEN]"),  # Telegram bot tokens
    (r"secret_[a-zA-Z0-9]{32,}", "[REDACTED_SECRET]"),  # Notion tokens
    (r'password["\']?\s*[:=]\s*["\']?[^"\'\s]+', "password=[REDACTED]"),
    (r'token["\']?\s*[:=]\s*["\']?[^"\'\s]+', "token=[REDACTED]"),
]


def sanitize_log_message(message: str, sensitive_patterns: list[str] | None = None) -> str:
    """Sanitize a log message to remove sensitive data.

    Mission prompts are free text typed by users and often carry
    credentials for the sites being automated, so everything that reaches
    a log handler goes through here.

    Args:
        message: Message to sanitize
        sensitive_patterns: Additional patterns to redact

    Returns:
        Sanitized message with sensitive data redacted
    """
    result = message

    for pattern, replacement in _DEFAULT_PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)

    if sensitive_patterns:
        for pattern in sensitive_patterns:
            result = re.sub(pattern, "[REDACTED]", result, flags=re.IGNORECASE)

    return result
