"""
Hashing helpers for composite document integrity and reference numbers.
"""

from __future__ import annotations

import hashlib
import uuid


def sha256_hash(content: str | bytes) -> str:
    """Return the SHA-256 hex digest of a rendered document or string."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def reference_number(prefix: str, seed: str = "") -> str:
    """
    Build an agreement/quote reference such as ``AGR-1A2B3C4D``.

    A seed makes the reference reproducible (same quote → same number);
    without one a random suffix is used.
    """
    if seed:
        suffix = sha256_hash(f"{prefix}:{seed}")[:8]
    else:
        suffix = uuid.uuid4().hex[:8]
    return f"{prefix}-{suffix.upper()}"
