"""
Cryptographic helpers — token hashing and constant-time comparison.

SHA-256 is used for hashing refresh tokens before they are stored on the user
record, so the plaintext credential is never persisted.
"""

from __future__ import annotations

import hashlib
import hmac


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Args:
        token: The plaintext token string to hash.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two strings in time independent of how many characters match."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
