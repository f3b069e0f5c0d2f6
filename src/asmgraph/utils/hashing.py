"""Content hashing for assembly identity (SHA-256)."""

from __future__ import annotations

import hashlib


def bytes_hash(data: bytes) -> str:
    """SHA-256 hex digest of an in-memory image. Binary-safe."""
    return hashlib.sha256(data).hexdigest()
