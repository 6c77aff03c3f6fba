"""Token utilities for bearer authentication and anonymous protocols."""
from __future__ import annotations

import hashlib
import secrets
from datetime import UTC, datetime, timedelta

from jose import jwt

from civic_guard.core.settings import settings

PROTOCOL_PREFIX = "ANON-"
_PROTOCOL_ENTROPY_BYTES = 18


def create_access_token(subject: str, extra_claims: dict[str, str] | None = None) -> str:
    """Create a JWT access token for the given actor reference."""
    to_encode: dict[str, object] = {"sub": subject}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> str | None:
    """Return the subject of a valid token, or None when it carries no subject.

    Raises:
        jose.JWTError: If the token is malformed, expired or badly signed.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    subject = payload.get("sub")
    return subject if isinstance(subject, str) else None


def mint_protocol_token() -> str:
    """Return a fresh, unguessable protocol token for an anonymous report."""
    return PROTOCOL_PREFIX + secrets.token_urlsafe(_PROTOCOL_ENTROPY_BYTES)


def hash_protocol_token(token: str) -> str:
    """Return the SHA-256 digest under which a protocol token is stored."""
    return hashlib.sha256(token.strip().encode("utf-8")).hexdigest()
