from __future__ import annotations

from typing import Any, Dict, Mapping


class PolicyPlaneError(Exception):
    """Base exception for policyplane."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class ValidationError(PolicyPlaneError, ValueError):
    """Raised for out-of-range configuration or malformed snapshot payloads."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        PolicyPlaneError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class NotFoundError(PolicyPlaneError, LookupError):
    """Raised when a rule, ADR, or other record cannot be found."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        PolicyPlaneError.__init__(self, message, context=context)
        LookupError.__init__(self, message)


class StateError(PolicyPlaneError, RuntimeError):
    """Raised when an operation is invalid in the current state."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        PolicyPlaneError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


class PersistenceError(PolicyPlaneError, OSError):
    """Raised when a required input (such as a config file) cannot be read."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        PolicyPlaneError.__init__(self, message, context=context)
        OSError.__init__(self, message)


__all__ = [
    "PolicyPlaneError",
    "ValidationError",
    "NotFoundError",
    "StateError",
    "PersistenceError",
]
