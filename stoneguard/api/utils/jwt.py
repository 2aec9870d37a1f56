from datetime import UTC, datetime, timedelta
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from config import ApplicationConfig


class SigningSecretMissingError(RuntimeError):
    """JWT_SECRET is not configured; tokens can be neither issued nor verified"""


def _signing_secret() -> str:
    secret = ApplicationConfig.JWT_SECRET
    if not secret:
        raise SigningSecretMissingError("JWT_SECRET is not configured")
    return secret


def generate_jwt(user_id: UUID, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Generate JWT access token

    Args:
        user_id: User UUID
        role: Stored role string (admin, customer, employee)
        expires_delta: Token lifetime, JWT_EXPIRY_MINUTES by default

    Returns:
        JWT token string (HS256)
    """
    now = datetime.now(UTC)
    if expires_delta is None:
        expires_delta = timedelta(minutes=ApplicationConfig.JWT_EXPIRY_MINUTES)
    payload = {
        "user_id": str(user_id),
        "role": role,
        "exp": now + expires_delta,
        "iat": now,
    }
    return jwt.encode(payload, _signing_secret(), algorithm="HS256")


def verify_jwt(token: str) -> Optional[dict]:
    """
    Verify and decode JWT token

    Returns:
        Decoded payload dict or None if invalid or expired

    Raises:
        SigningSecretMissingError: the server cannot verify anything
    """
    secret = _signing_secret()
    try:
        return jwt.decode(token, secret, algorithms=["HS256"])
    except JWTError:
        return None
