"""Shared test helpers for policyplane."""
