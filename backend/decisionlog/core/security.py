"""Security utilities.

Single source of truth for:
- JWT access token creation/verification (caller identity)
- Signed artifact tokens used by local object storage links
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from decisionlog.config import settings

_ARTIFACT_TOKEN_TYPE = "artifact"


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a JWT access token from a payload dict.

    Expected to include `sub` in `data` for user identity.
    """

    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_access_token_for_subject(subject: str, expires_minutes: Optional[int] = None) -> str:
    minutes = expires_minutes or settings.access_token_expire_minutes
    return create_access_token({"sub": subject}, expires_delta=timedelta(minutes=minutes))


def decode_access_token(token: str) -> Optional[dict]:
    """Decode JWT access token; returns payload or None if invalid."""

    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    # Artifact tokens share the signing key but must never authenticate a caller.
    if payload.get("typ") == _ARTIFACT_TOKEN_TYPE:
        return None
    return payload


def decode_access_token_subject(token: str) -> Optional[str]:
    payload = decode_access_token(token)
    if not payload:
        return None
    subject = payload.get("sub")
    return str(subject) if subject else None


def create_artifact_token(
    *,
    bucket: str,
    key: str,
    content_type: str,
    expires_in_seconds: int,
) -> str:
    expire = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in_seconds))
    claims = {
        "typ": _ARTIFACT_TOKEN_TYPE,
        "bucket": bucket,
        "key": key,
        "ct": content_type,
        "exp": expire,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_artifact_token(token: str) -> Optional[dict[str, Any]]:
    """Return the artifact claims, or None when the token is invalid or expired."""

    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if claims.get("typ") != _ARTIFACT_TOKEN_TYPE:
        return None
    if not claims.get("bucket") or not claims.get("key"):
        return None
    return claims
