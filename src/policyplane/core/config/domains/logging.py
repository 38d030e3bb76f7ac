"""Domain-specific configuration for policyplane logging and audit.

This config controls:
- The stdlib logging level for ``policyplane.*`` loggers and an optional log file
- Whether structured audit events are appended as JSON lines, and where
"""
from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import Optional

from ..base import BaseDomainConfig


class LoggingConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "logging"

    @cached_property
    def level(self) -> str:
        return str(self.section.get("level", "INFO") or "INFO").upper()

    @cached_property
    def log_file(self) -> Optional[Path]:
        return self._resolve(self.section.get("file"))

    @cached_property
    def audit_enabled(self) -> bool:
        audit = self.section.get("audit") or {}
        return bool(audit.get("enabled", False))

    @cached_property
    def audit_path(self) -> Optional[Path]:
        """Resolved audit JSONL path, or None when unset.

        Relative paths resolve against ``repo_root`` (or the working directory).
        """
        audit = self.section.get("audit") or {}
        return self._resolve(audit.get("path"))

    def _resolve(self, value: object) -> Optional[Path]:
        raw = str(value or "").strip()
        if not raw:
            return None
        path = Path(raw).expanduser()
        if not path.is_absolute():
            path = (self.repo_root or Path.cwd()) / path
        return path


__all__ = ["LoggingConfig"]
