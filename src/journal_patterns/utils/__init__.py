"""Shared utilities."""

from journal_patterns.utils.logging import LogContext, setup_logging

__all__ = ["LogContext", "setup_logging"]
