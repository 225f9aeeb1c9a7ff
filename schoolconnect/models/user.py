"""
User model for SchoolConnect accounts.
Defines the user document, roles, and authentication DTOs.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from schoolconnect.models.base import CamelModel, RequestModel, UtcDatetime, new_id, utcnow


class UserRole(str, Enum):
    teacher = "teacher"
    student = "student"
    parent = "parent"


# ===== Database Model =====
class User(CamelModel):
    """User document."""
    id: str = Field(default_factory=new_id, alias="_id")
    first_name: str
    second_name: str
    surname: str
    email: EmailStr
    password_hash: str
    role: UserRole
    is_email_verified: bool = False
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.surname}"


# ===== Request DTOs =====
class SignUpRequest(RequestModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    second_name: str = Field(..., min_length=1, max_length=50)
    surname: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole

    @field_validator("first_name", "second_name", "surname")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("email")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.strip().lower()


class SignInRequest(RequestModel):
    email: EmailStr
    password: str


# ===== Response DTOs =====
class UserResponse(CamelModel):
    """User without credentials."""
    id: str = Field(alias="_id")
    first_name: str
    second_name: str
    surname: str
    email: EmailStr
    role: UserRole
    is_email_verified: bool = False
    created_at: UtcDatetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls.model_validate(user.model_dump(exclude={"password_hash", "updated_at"}))


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token expiration in seconds")


class AuthResponse(CamelModel):
    success: bool = True
    user: UserResponse
    token: TokenResponse
    message: Optional[str] = None
