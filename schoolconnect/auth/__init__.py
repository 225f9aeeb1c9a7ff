# Auth module for SchoolConnect
# JWT-based authentication and role-based authorization

from schoolconnect.auth.jwt_handler import create_access_token, verify_token
from schoolconnect.auth.password import hash_password, verify_password

__all__ = [
    "create_access_token",
    "verify_token",
    "hash_password",
    "verify_password",
]
