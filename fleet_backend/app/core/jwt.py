"""
JWT token utilities for authentication.

Tokens are issued by the account service; this service only needs to
verify them. ``create_access_token`` is kept for operator tooling and tests.
"""

from datetime import timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from fleet_backend.app.core.config import settings
from fleet_backend.app.core.clock import utcnow


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data payload to encode in the token (should include: sub, user_id, role, company_id)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string

    Example payload:
        {
            "sub": "driver@acme.test",
            "user_id": 123,
            "role": "driver",
            "company_id": 7,
            "exp": 1234567890
        }
    """
    to_encode = data.copy()

    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    return encoded_jwt


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string to decode

    Returns:
        Decoded token payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return payload
    except JWTError:
        return None
