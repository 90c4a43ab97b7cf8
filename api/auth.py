"""
Bearer token authentication for the FastAPI API.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from api.config import config

logger = structlog.get_logger(__name__)

# Security scheme
security = HTTPBearer()


def create_access_token(user_id: str, role: Optional[str] = None, expires_minutes: Optional[int] = None) -> str:
    """
    Issue a signed access token for a user.

    Args:
        user_id: Identifier placed in the ``userId`` claim
        role: Optional role claim
        expires_minutes: Lifetime override, defaults to the configured one

    Returns:
        Encoded JWT
    """
    minutes = expires_minutes if expires_minutes is not None else config.access_token_expire_minutes
    payload: Dict[str, Any] = {
        "userId": user_id,
        "exp": datetime.utcnow() + timedelta(minutes=minutes),
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, config.secret_key, algorithm=config.algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify an access token.

    Raises:
        HTTPException: 401 if the token is invalid, expired or has no user
    """
    try:
        payload = jwt.decode(token, config.secret_key, algorithms=[config.algorithm])
    except JWTError as e:
        logger.warning("Invalid access token", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    if not payload.get("userId"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token carries no user",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


async def get_current_user_id(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """Resolve the bearer token to the caller's user id."""
    payload = decode_access_token(credentials.credentials)
    return str(payload["userId"])
