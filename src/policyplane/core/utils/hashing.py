"""Content digests used for change detection."""
from __future__ import annotations

import hashlib

DIGEST_LENGTH = 16


def content_digest(content: str) -> str:
    """Return the SHA-256 hex digest of ``content`` truncated to 16 characters."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]


__all__ = ["DIGEST_LENGTH", "content_digest"]
