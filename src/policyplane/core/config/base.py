"""Base class for domain-specific configuration accessors.

Provides a standardized pattern for all domain configs with:
- Centralized caching via cache.py
- Optional per-instance overrides, re-validated against the section schema
- Type-safe section access
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from policyplane.core.schemas import section_schema, validate_against
from policyplane.core.utils.merge import deep_merge

from .cache import get_cached_config


class BaseDomainConfig(ABC):
    """Abstract base class for domain-specific configuration accessors.

    Usage:
        class MyConfig(BaseDomainConfig):
            def _config_section(self) -> str:
                return "mySection"

            @cached_property
            def my_setting(self) -> str:
                return self.section.get("mySetting", "default")

        cfg = MyConfig(overrides={"mySetting": "custom"})
        print(cfg.my_setting)
    """

    def __init__(
        self,
        repo_root: Optional[Path] = None,
        *,
        config: Optional[Mapping[str, Any]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Initialize domain config.

        Args:
            repo_root: Repository root whose ``.policyplane/config`` overlays apply.
            config: Pre-loaded full configuration (skips the cache when given).
            overrides: Mapping merged over this domain's section.

        Raises:
            ValidationError: If the merged section violates the config schema.
        """
        self._repo_root = repo_root
        self._config = dict(config) if config is not None else get_cached_config(repo_root=repo_root)
        self._overrides = dict(overrides or {})
        if self._overrides:
            name = self._config_section()
            validate_against(
                self.section,
                section_schema("config", name),
                label=f"config.{name}",
            )

    @property
    def repo_root(self) -> Optional[Path]:
        return self._repo_root

    @abstractmethod
    def _config_section(self) -> str:
        """Return the top-level config key for this domain (e.g. ``"retriever"``)."""
        ...

    @cached_property
    def section(self) -> Dict[str, Any]:
        """Get this domain's configuration section with overrides applied."""
        base = self._config.get(self._config_section(), {}) or {}
        return deep_merge(base, self._overrides)


__all__ = ["BaseDomainConfig"]
