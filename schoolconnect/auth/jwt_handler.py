"""
JWT token handling for SchoolConnect authentication.
Handles token creation and verification.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from schoolconnect.settings import settings

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """JWT token payload schema."""
    user_id: str
    email: str
    role: str
    exp: Optional[datetime] = None
    iat: Optional[datetime] = None


def token_lifetime_seconds() -> int:
    return settings.jwt_expire_minutes * 60


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: User's unique identifier
        email: User's email
        role: teacher, student or parent
        expires_delta: Optional custom expiration time

    Returns:
        JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))

    payload = {
        "user_id": user_id,
        "email": email,
        "role": role,
        "exp": expire,
        "iat": now,
    }
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    logger.info("Created access token for user: %s", email)
    return token


def verify_token(token: str) -> Optional[TokenPayload]:
    """
    Verify and decode a JWT token.

    Returns:
        TokenPayload if valid, None otherwise (bad signature, expired, malformed)
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning("Token verification failed: %s", e)
        return None

    if not payload.get("user_id"):
        logger.warning("Token without user_id rejected")
        return None

    exp = payload.get("exp")
    iat = payload.get("iat")
    return TokenPayload(
        user_id=payload["user_id"],
        email=payload.get("email", ""),
        role=payload.get("role", ""),
        exp=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
        iat=datetime.fromtimestamp(iat, tz=timezone.utc) if iat else None,
    )
