"""Shared utilities."""

from .validation import sanitize_log_message

__all__ = ["sanitize_log_message"]
