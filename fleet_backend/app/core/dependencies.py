"""
Authentication dependencies for FastAPI.

Tokens are issued by the account service. This module only verifies them and
confirms the user still exists and is active.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from fleet_backend.app.core.jwt import decode_access_token
from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    1. Validates JWT token signature and expiry
    2. Verifies user is still active in database (real-time check)

    Role and company are taken from the database row, not from the token,
    so an admin moving a driver between companies takes effect immediately.

    Returns:
        Payload dict with sub, user_id, role and company_id

    Raises:
        HTTPException: 401 if authentication fails, 403 if the account is inactive
    """
    token = credentials.credentials

    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return {
        "sub": payload.get("sub", user.email),
        "user_id": user.id,
        "role": user.role.value,
        "company_id": user.company_id,
    }
