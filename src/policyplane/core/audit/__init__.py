"""Structured audit events and stdlib logging setup."""
from __future__ import annotations

from .jsonl import append_jsonl
from .logger import audit_event
from .stdlib_logging import configure_stdlib_logging, reset_stdlib_logging_for_tests

__all__ = [
    "append_jsonl",
    "audit_event",
    "configure_stdlib_logging",
    "reset_stdlib_logging_for_tests",
]
