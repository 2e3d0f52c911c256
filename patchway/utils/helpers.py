"""
Helper utilities for Patchway.

Provides general-purpose helper functions for:
- Identifier generation
- Timestamps
- Stable content hashing
- String manipulation
"""

from __future__ import annotations

import hashlib
import json
import secrets
from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_id(prefix: str) -> str:
    """
    Generate a unique, roughly time-ordered identifier.

    Args:
        prefix: Identifier prefix (e.g., "patch", "lease")

    Returns:
        Identifier like ``patch-20240101120000-1a2b3c4d``
    """
    timestamp = utc_now().strftime("%Y%m%d%H%M%S")
    random_part = secrets.token_hex(4)
    return f"{prefix}-{timestamp}-{random_part}"


def derived_id(prefix: str, *parts: Any) -> str:
    """
    Build an identifier that is the same every time for the same inputs.

    Used where a redelivered work item must reproduce the ids of its first
    delivery.

    Args:
        prefix: Identifier prefix
        *parts: Values the identifier is derived from

    Returns:
        Identifier like ``patch-3f2a9c1b7d4e``
    """
    return f"{prefix}-{stable_hash(list(parts), length=12)}"


def hash_string(text: str, algorithm: str = "sha256") -> str:
    """
    Hash a string.

    Args:
        text: String to hash
        algorithm: Hash algorithm (md5, sha1, sha256)

    Returns:
        Hex digest
    """
    h = hashlib.new(algorithm)
    h.update(text.encode("utf-8"))
    return h.hexdigest()


def stable_hash(data: Any, length: int = 16) -> str:
    """
    Hash JSON-compatible data independently of key order.

    Args:
        data: Data to hash
        length: Number of hex characters to keep

    Returns:
        Truncated hex digest
    """
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hash_string(canonical)[:length]


def truncate_string(
    text: str,
    max_length: int,
    suffix: str = "...",
) -> str:
    """
    Truncate a string to a maximum length.

    Args:
        text: Input string
        max_length: Maximum length including suffix
        suffix: Suffix to append when truncated

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text

    return text[: max_length - len(suffix)] + suffix
