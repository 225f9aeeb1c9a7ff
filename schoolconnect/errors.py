"""
Error taxonomy for SchoolConnect.

Services and repositories raise these; ``main.py`` renders them as
``{"error": ..., "details": ...}`` with the matching HTTP status.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError


class SchoolConnectError(Exception):
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, details: Any = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class Unauthenticated(SchoolConnectError):
    status_code = 401
    message = "Authentication required"


class Forbidden(SchoolConnectError):
    status_code = 403
    message = "Access denied"


class NotFound(SchoolConnectError):
    status_code = 404
    message = "Not found"


class InvalidState(SchoolConnectError):
    status_code = 400
    message = "Invalid state"


class AttemptNotInProgress(InvalidState):
    message = "Quiz attempt is not in progress"


class AttemptLimitReached(InvalidState):
    status_code = 403
    message = "Maximum attempts reached"


class DeadlineExpired(InvalidState):
    status_code = 403
    message = "Quiz deadline has passed"


class ValidationFailed(SchoolConnectError):
    status_code = 400
    message = "Validation failed"

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailed":
        return cls(details=field_errors(exc.errors()))


def field_errors(errors) -> list[dict[str, str]]:
    """Flatten pydantic error entries into ``{"field", "message"}`` pairs."""
    return [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg", "")}
        for err in errors
    ]


class Conflict(SchoolConnectError):
    status_code = 409
    message = "Conflict"


class ServiceUnavailable(SchoolConnectError):
    status_code = 503
    message = "Service temporarily unavailable"


class DuplicateAttempt(SchoolConnectError):
    """Unique (student, quiz, attemptNumber) violated on insert."""

    status_code = 409
    message = "Attempt already exists"
