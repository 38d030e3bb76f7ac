"""Schema validation utilities for policyplane.

This module provides centralized JSON schema loading and validation
for configuration and imported snapshots.
"""
from __future__ import annotations

from .validation import (
    load_schema,
    section_schema,
    validate_against,
    validate_payload,
)

__all__ = [
    "load_schema",
    "section_schema",
    "validate_against",
    "validate_payload",
]
