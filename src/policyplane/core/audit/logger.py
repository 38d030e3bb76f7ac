from __future__ import annotations

import os
from typing import Any, Optional

from policyplane.core.audit.jsonl import append_jsonl
from policyplane.core.config.domains.logging import LoggingConfig
from policyplane.core.utils.time import utc_timestamp


def audit_event(event: str, *, settings: Optional[LoggingConfig] = None, **fields: Any) -> None:
    """Emit a single structured audit event as JSONL (fail-open).

    This is separate from stdlib ``logging`` so audit consumers get one
    machine-readable stream. Nothing is written unless
    ``logging.audit.enabled`` is true and ``logging.audit.path`` is set.

    Args:
        event: Dotted event name (``"gate.decision"``).
        settings: Logging settings; bundled defaults + env when omitted.
        **fields: Extra JSON-serializable payload fields.
    """
    cfg = settings if settings is not None else LoggingConfig()
    if not cfg.audit_enabled:
        return
    path = cfg.audit_path
    if path is None:
        return

    payload: dict[str, Any] = {
        "ts": utc_timestamp(),
        "event": event,
        "pid": os.getpid(),
    }
    payload.update(fields)
    append_jsonl(path=path, payload=payload)


__all__ = ["audit_event"]
