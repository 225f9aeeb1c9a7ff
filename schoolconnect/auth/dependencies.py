"""
FastAPI dependencies for authentication and authorization.
A caller is identified by a bearer token or the auth cookie.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from schoolconnect.auth.jwt_handler import verify_token
from schoolconnect.errors import Forbidden, NotFound, Unauthenticated
from schoolconnect.models import User
from schoolconnect.settings import settings
from schoolconnect.storage.repo import SchoolRepository
from schoolconnect.wiring import get_repo

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.auth_cookie_name)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    repo: SchoolRepository = Depends(get_repo),
) -> User:
    """
    Resolve the authenticated user.

    Raises:
        Unauthenticated: no token, or the token does not verify
        NotFound: the token's user no longer exists
    """
    token = extract_token(request, credentials)
    if not token:
        raise Unauthenticated("Authentication required")

    payload = verify_token(token)
    if payload is None:
        raise Unauthenticated("Invalid or expired token")

    user = await repo.get_user(payload.user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def require_role(allowed_roles: List[str], message: Optional[str] = None):
    """
    Dependency factory for role-based authorization.

    Usage:
        @router.post("/quizzes")
        async def create_quiz(user: User = Depends(require_role(["teacher"]))):
            ...
    """

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            logger.warning(
                "Access denied for user %s with role %s. Required roles: %s",
                current_user.email,
                current_user.role,
                allowed_roles,
            )
            raise Forbidden(message or f"Access denied. Required role(s): {', '.join(allowed_roles)}")
        return current_user

    return role_checker
