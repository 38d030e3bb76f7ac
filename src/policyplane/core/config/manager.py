"""
policyplane configuration management (YAML layers + env overrides).
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import yaml

from policyplane.core.exceptions import PersistenceError, ValidationError
from policyplane.core.schemas import validate_payload
from policyplane.core.utils.merge import deep_merge as _deep_merge
from policyplane.data import get_data_path

logger = logging.getLogger(__name__)

ENV_PREFIX = "POLICYPLANE_"
PROJECT_CONFIG_DIRNAME = ".policyplane"


class ConfigManager:
    """Load, merge, and validate policyplane configuration.

    Configuration sources (highest to lowest priority):
    1. Environment variables: POLICYPLANE_<section>__<key>
    2. Project config: <repo_root>/.policyplane/config/*.yaml (alphabetical order)
    3. Bundled defaults: policyplane.data/config/*.yaml (alphabetical order)

    Without a ``repo_root`` only the bundled defaults and the environment apply.
    """

    def __init__(self, repo_root: Optional[Path] = None) -> None:
        self.repo_root = repo_root
        self.core_config_dir = get_data_path("config")
        self.project_config_dir: Optional[Path] = (
            repo_root / PROJECT_CONFIG_DIRNAME / "config" if repo_root is not None else None
        )

    def deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge dictionaries. Delegates to shared implementation."""
        return _deep_merge(base, override)

    def load_yaml(self, path: Path) -> Dict[str, Any]:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(
                f"Cannot read config file {path}: {exc}", context={"path": str(path)}
            ) from exc
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            # Fail closed: configuration must never silently ignore invalid YAML.
            raise ValidationError(
                f"Invalid YAML in {path}: {exc}", context={"path": str(path)}
            ) from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError(
                f"Config file must contain a mapping: {path}", context={"path": str(path)}
            )
        return data

    def validate_schema(self, config: Dict[str, Any], schema_name: str = "config") -> None:
        validate_payload(config, schema_name)

    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            return int(v)
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            return float(s)
        return None

    def _as_json(self, v: str) -> Optional[Any]:
        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                return json.loads(s)
            except json.JSONDecodeError:
                return None
        return None

    def _coerce_type(self, value: str) -> Any:
        for caster in (self._as_bool, self._as_int, self._as_float, self._as_json):
            result = caster(value)
            if result is not None:
                return result
        return value.strip()

    def _parse_env_key(self, raw: str) -> List[str]:
        segs = raw.split("__")
        if any(seg == "" for seg in segs):
            raise ValidationError(
                f"Malformed {ENV_PREFIX}* key: empty segment in '{raw}'.",
                context={"key": raw},
            )
        return segs

    def _iter_env_overrides(self) -> Iterator[Tuple[List[str], Any]]:
        for key in sorted(os.environ.keys()):
            if not key.startswith(ENV_PREFIX):
                continue
            raw = key[len(ENV_PREFIX):]
            if not raw:
                continue
            yield self._parse_env_key(raw), self._coerce_type(os.environ[key])

    def _set_nested(self, root: Dict[str, Any], path: List[str], value: Any) -> None:
        cur: Dict[str, Any] = root
        for i, part in enumerate(path):
            # Case-insensitive match so POLICYPLANE_RETRIEVER__MAXSHARDS hits maxShards.
            key_candidates = {k.lower(): k for k in cur.keys() if isinstance(k, str)}
            key = key_candidates.get(part.lower(), part)
            if i == len(path) - 1:
                cur[key] = value
                return
            nxt = cur.get(key)
            if not isinstance(nxt, dict):
                nxt = {}
                cur[key] = nxt
            cur = nxt

    def apply_env_overrides(self, cfg: Dict[str, Any]) -> None:
        for path, typed_value in self._iter_env_overrides():
            logger.debug("Applying env override %s", ".".join(path))
            self._set_nested(cfg, path, typed_value)

    def _load_directory(self, directory: Optional[Path], cfg: Dict[str, Any]) -> Dict[str, Any]:
        """Merge every ``*.yaml``/``*.yml`` file in ``directory`` (alphabetical) into ``cfg``."""
        if directory is None or not directory.is_dir():
            return cfg
        files = sorted(p for p in directory.iterdir() if p.suffix in {".yaml", ".yml"})
        for path in files:
            cfg = self.deep_merge(cfg, self.load_yaml(path))
        return cfg

    def _load_config_uncached(self, validate: bool = True) -> Dict[str, Any]:
        """Load and merge configuration from every source (UNCACHED).

        Args:
            validate: If True, validate against the bundled JSON schema

        Returns:
            Merged configuration dictionary
        """
        cfg: Dict[str, Any] = {}
        cfg = self._load_directory(self.core_config_dir, cfg)
        cfg = self._load_directory(self.project_config_dir, cfg)
        self.apply_env_overrides(cfg)
        if validate:
            self.validate_schema(cfg)
        return cfg

    def load_config(self, validate: bool = True) -> Dict[str, Any]:
        """Load configuration through the shared cache."""
        from .cache import get_cached_config

        return get_cached_config(repo_root=self.repo_root, validate=validate)

    def get(self, dotted_key: str, default: Any = None) -> Any:
        """Look up ``"section.key"`` in the loaded configuration."""
        cur: Union[Dict[str, Any], Any] = self.load_config()
        for part in dotted_key.split("."):
            if not isinstance(cur, dict) or part not in cur:
                return default
            cur = cur[part]
        return cur


__all__ = ["ConfigManager", "ENV_PREFIX", "PROJECT_CONFIG_DIRNAME"]
