"""
policyplane - Guidance Control Plane for automated coding agents.

Compiles human-authored guidance markdown into an enforceable policy bundle,
retrieves task-scoped rule shards, gates tool invocations, records run outcomes,
and evolves the rules through a heuristic optimizer loop.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
