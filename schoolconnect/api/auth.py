"""
Authentication routes: sign up, sign in and the current user.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status

from schoolconnect.auth.dependencies import get_current_user
from schoolconnect.auth.jwt_handler import create_access_token, token_lifetime_seconds
from schoolconnect.auth.password import hash_password, verify_password
from schoolconnect.errors import Unauthenticated
from schoolconnect.models import User
from schoolconnect.models.user import AuthResponse, SignInRequest, SignUpRequest, TokenResponse, UserResponse
from schoolconnect.settings import settings
from schoolconnect.storage.repo import SchoolRepository
from schoolconnect.wiring import get_repo

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(req: SignUpRequest, repo: SchoolRepository = Depends(get_repo)) -> dict:
    user = User(
        first_name=req.first_name,
        second_name=req.second_name,
        surname=req.surname,
        email=req.email,
        password_hash=hash_password(req.password),
        role=req.role,
    )
    await repo.create_user(user)
    logger.info("New %s account: %s", user.role, user.email)
    return {
        "success": True,
        "message": "Account created successfully",
        "user": UserResponse.from_user(user).to_wire(),
    }


@router.post("/signin")
async def signin(req: SignInRequest, response: Response, repo: SchoolRepository = Depends(get_repo)) -> dict:
    """
    Authenticate and return a bearer token; the same token is set as an
    HTTP-only cookie for browser clients.
    """
    user = await repo.get_user_by_email(req.email.strip().lower())
    if user is None or not verify_password(req.password, user.password_hash):
        logger.warning("Failed sign in for %s", req.email)
        raise Unauthenticated("Invalid email or password")

    token = create_access_token(user.id, user.email, user.role)
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=token_lifetime_seconds(),
        httponly=True,
        secure=settings.env == "production",
        samesite="strict",
    )
    body = AuthResponse(
        user=UserResponse.from_user(user),
        token=TokenResponse(access_token=token, expires_in=token_lifetime_seconds()),
        message="Sign in successful",
    )
    return body.to_wire()


@router.get("/me")
async def me(user: User = Depends(get_current_user)) -> dict:
    return {"success": True, "user": UserResponse.from_user(user).to_wire()}
