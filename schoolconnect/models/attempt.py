"""
Quiz attempt model for SchoolConnect.
Tracks one student's pass through a quiz and its graded responses.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, JsonValue

from schoolconnect.models.base import CamelModel, RequestModel, UtcDatetime, new_id, utcnow

# Raw answer as sent by the client. Any JSON is accepted; grading reads it per question type.
AnswerValue = JsonValue


class AttemptStatus(str, Enum):
    in_progress = "in_progress"
    completed = "completed"
    abandoned = "abandoned"
    time_expired = "time_expired"


TERMINAL_STATUSES = (AttemptStatus.completed, AttemptStatus.abandoned, AttemptStatus.time_expired)


# ===== Typed answers (keyed by question type) =====
class ChoiceAnswer(BaseModel):
    kind: Literal["multiple_choice"] = "multiple_choice"
    index: int


class BooleanAnswer(BaseModel):
    kind: Literal["true_false"] = "true_false"
    value: bool


class TextAnswer(BaseModel):
    kind: Literal["short_answer"] = "short_answer"
    text: str


Answer = Annotated[Union[ChoiceAnswer, BooleanAnswer, TextAnswer], Field(discriminator="kind")]


class QuestionResponse(CamelModel):
    """One answer record embedded in an attempt."""
    question_id: str
    answer: AnswerValue = None
    is_correct: bool = False
    points_earned: int = Field(0, ge=0)
    time_spent_seconds: int = Field(0, ge=0)
    attempts: int = Field(1, ge=1)


# ===== Database Model =====
class QuizAttempt(CamelModel):
    id: str = Field(default_factory=new_id, alias="_id")
    quiz: str
    student: str
    attempt_number: int = Field(..., ge=1)
    status: AttemptStatus = AttemptStatus.in_progress
    responses: list[QuestionResponse] = Field(default_factory=list)
    score: int = Field(0, ge=0)
    max_score: int = Field(..., ge=1)
    percentage: int = Field(0, ge=0, le=100)
    time_spent_minutes: float = Field(0, ge=0)
    started_at: UtcDatetime = Field(default_factory=utcnow)
    completed_at: Optional[UtcDatetime] = None
    submitted_at: Optional[UtcDatetime] = None
    feedback: Optional[str] = Field(None, max_length=1000)
    graded_by: Optional[str] = None
    graded_at: Optional[UtcDatetime] = None
    ip_address: Optional[str] = Field(None, max_length=45)
    user_agent: Optional[str] = Field(None, max_length=500)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# ===== Request DTOs =====
class ResponseInput(RequestModel):
    question_id: str
    answer: AnswerValue = None
    time_spent_seconds: int = Field(0, ge=0)


class ProgressSaveRequest(RequestModel):
    responses: Optional[list[ResponseInput]] = None
    time_spent_minutes: Optional[float] = Field(None, ge=0)


class SubmitRequest(RequestModel):
    responses: list[ResponseInput]
    time_spent_minutes: float = Field(0, ge=0)


# ===== Response DTOs =====
class AttemptResult(CamelModel):
    """Graded outcome returned from a submit."""
    id: str = Field(alias="_id")
    score: int
    max_score: int
    percentage: int
    time_spent_minutes: float
    status: AttemptStatus
    responses: list[QuestionResponse]
    completed_at: Optional[UtcDatetime] = None

    @classmethod
    def from_attempt(cls, attempt: QuizAttempt) -> "AttemptResult":
        return cls(
            id=attempt.id,
            score=attempt.score,
            max_score=attempt.max_score,
            percentage=attempt.percentage,
            time_spent_minutes=attempt.time_spent_minutes,
            status=attempt.status,
            responses=attempt.responses,
            completed_at=attempt.completed_at,
        )
