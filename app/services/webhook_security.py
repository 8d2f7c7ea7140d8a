"""
Signature helpers for provider callbacks.
"""

import hashlib
import hmac


def constant_time_compare(a: str | None, b: str | None) -> bool:
    """Compare two strings in constant time; empty values never match."""
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Hex HMAC-SHA256 of ``payload`` keyed with ``secret``."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
