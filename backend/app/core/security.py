"""Issuing and verifying the service's own HS256 access tokens."""

from datetime import timedelta
from typing import Any, Optional
from uuid import UUID

from jose import JWTError, jwt

from app.config import settings
from app.utils.datetime_utils import utc_now


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data to encode in token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = utc_now() + expires_delta
    else:
        expire = utc_now() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a JWT token.

    Raises:
        JWTError: If token is invalid or expired
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def is_local_token(token: str) -> bool:
    """True when the unverified header says the token was signed by this service."""
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        return False
    return header.get("alg") == settings.ALGORITHM


def user_id_from_access_token(token: str) -> Optional[UUID]:
    """
    Verify a locally issued access token and return the user ID in ``sub``.

    Returns None for a bad signature, an expired token, a non-access token
    or a ``sub`` that is not a UUID.
    """
    try:
        payload = decode_token(token)
    except JWTError:
        return None

    if payload.get("type") != "access":
        return None

    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        return None
