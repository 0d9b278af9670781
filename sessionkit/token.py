"""Session token generation."""

from __future__ import annotations

import hashlib
import secrets

TOKEN_BYTES = 32  # 43 characters once base64url-encoded without padding


def generate_token() -> str:
    """Return a new random, URL-safe session token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Hex SHA-256 of a token, used as the store key when hashing is enabled."""
    return hashlib.sha256(token.encode()).hexdigest()
