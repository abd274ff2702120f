"""Utilities for hashing and verifying challenge flags."""

from __future__ import annotations

import hashlib
import hmac


def hash_flag(plain_flag: str) -> str:
    """Return the hex SHA-256 digest stored in ``challenges.flag_hash``.

    Flags are hashed exactly as submitted (after trimming); there is no salt,
    so the same flag always produces the same digest.
    """

    if plain_flag is None:
        raise ValueError("Flag must be a non-null string")
    return hashlib.sha256(plain_flag.encode("utf-8")).hexdigest()


def verify_flag(plain_flag: str, stored_hash: str | None) -> bool:
    """Return True when ``plain_flag`` hashes to ``stored_hash``.

    A challenge without a stored digest can never be solved. The digests are
    compared with :func:`hmac.compare_digest`.
    """

    if not stored_hash:
        return False
    candidate = hash_flag(plain_flag or "")
    return hmac.compare_digest(candidate, stored_hash.strip().lower())
