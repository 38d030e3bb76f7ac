from __future__ import annotations

import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _json_safe(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    return value


def append_jsonl(*, path: Path, payload: dict[str, Any]) -> bool:
    """Append one JSON line to ``path`` with fsync (fail-open).

    Returns:
        True when the line was written; False when the write failed (logged).
    """
    try:
        line = json.dumps({k: _json_safe(v) for k, v in payload.items()}, ensure_ascii=False) + "\n"
    except (TypeError, ValueError) as exc:
        logger.warning("Audit payload not serializable: %s", exc)
        return False

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(line)
            fh.flush()
            os.fsync(fh.fileno())
    except OSError as exc:
        logger.warning("Audit write to %s failed: %s", path, exc)
        return False
    return True


__all__ = ["append_jsonl"]
