"""Shared schema validation utilities.

policyplane validates configuration and imported snapshots (run events,
optimizer state) using JSON Schema. Schemas are stored as YAML files under
``policyplane.data/schemas/`` and loaded in a single, consistent way.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, List, Mapping

from jsonschema import Draft202012Validator

from policyplane.core.exceptions import ValidationError
from policyplane.data import get_data_path, read_yaml


def _normalize_name(schema_name: str) -> str:
    lowered = schema_name.lower()
    if lowered.endswith(".yaml") or lowered.endswith(".yml"):
        return schema_name
    return f"{schema_name}.schema.yaml"


@lru_cache(maxsize=32)
def load_schema(schema_name: str) -> Dict[str, Any]:
    """Load a bundled schema dict.

    Args:
        schema_name: Schema name (``"config"``) or file name
            (``"config.schema.yaml"``) under the bundled schemas directory.

    Returns:
        Parsed schema dictionary.

    Raises:
        FileNotFoundError: If the schema file doesn't exist.
        ValueError: If the schema is not a YAML mapping.
    """
    filename = _normalize_name(schema_name)
    path = get_data_path("schemas", filename)
    if not path.exists():
        raise FileNotFoundError(f"Schema not found: {filename} (searched {path.parent})")
    schema = read_yaml("schemas", filename)
    if not isinstance(schema, dict):
        raise ValueError(f"Schema must be a YAML mapping, got {type(schema).__name__}")
    return schema


def section_schema(schema_name: str, section: str) -> Dict[str, Any]:
    """Return the subschema for a top-level ``section`` (empty when unknown)."""
    props = load_schema(schema_name).get("properties") or {}
    sub = props.get(section) or {}
    return sub if isinstance(sub, dict) else {}


def validate_payload(payload: Any, schema_name: str) -> None:
    """Validate a payload against a bundled schema.

    Raises:
        ValidationError: If validation fails.
    """
    validate_against(payload, load_schema(schema_name), label=schema_name)


def validate_against(payload: Any, schema: Mapping[str, Any], *, label: str) -> None:
    """Validate ``payload`` against an already-loaded ``schema``.

    Raises:
        ValidationError: If validation fails; ``context["errors"]`` lists every
            violation with its dotted path.
    """
    errors = _collect_errors(payload, schema)
    if errors:
        raise ValidationError(
            f"Validation failed against schema '{label}': {errors[0]}",
            context={"schema": label, "errors": errors},
        )


def _collect_errors(payload: Any, schema: Mapping[str, Any]) -> List[str]:
    errors: List[str] = []
    validator = Draft202012Validator(schema)
    for error in sorted(validator.iter_errors(payload), key=lambda e: str(list(e.path))):
        if error.path:
            path_str = ".".join(str(p) for p in error.path)
            errors.append(f"{path_str}: {error.message}")
        else:
            errors.append(error.message)
    return errors


__all__ = [
    "load_schema",
    "section_schema",
    "validate_payload",
    "validate_against",
]
