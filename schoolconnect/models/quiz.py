"""
Quiz model for SchoolConnect.
Questions are embedded in the quiz document and share its lifetime.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import Field, StrictBool, StrictInt, StrictStr, field_validator, model_validator

from schoolconnect.models.base import CamelModel, RequestModel, UtcDatetime, new_id, utcnow

CorrectAnswer = Union[StrictBool, StrictInt, StrictStr]

MAX_QUESTIONS = 50
MAX_TAGS = 10
DEFAULT_PASSING_SCORE = 70


class QuestionType(str, Enum):
    multiple_choice = "multiple_choice"
    true_false = "true_false"
    short_answer = "short_answer"


class QuizStatus(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class Question(CamelModel):
    id: str = Field(default_factory=new_id)
    type: QuestionType
    question: str = Field(..., min_length=1, max_length=1000)
    options: Optional[list[str]] = None
    correct_answer: CorrectAnswer
    explanation: Optional[str] = Field(None, max_length=500)
    points: int = Field(1, ge=1, le=10)
    difficulty: Difficulty = Difficulty.medium
    time_limit: Optional[int] = Field(None, ge=10, le=600)

    @field_validator("question")
    @classmethod
    def _strip_question(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Question text is required")
        return value

    @model_validator(mode="after")
    def _check_answer_key(self) -> "Question":
        if self.type == QuestionType.multiple_choice:
            if not self.options or not 2 <= len(self.options) <= 6:
                raise ValueError("Multiple choice questions must have 2-6 options")
            if isinstance(self.correct_answer, bool) or not isinstance(self.correct_answer, int):
                raise ValueError("Invalid correct answer index")
            if not 0 <= self.correct_answer < len(self.options):
                raise ValueError("Invalid correct answer index")
        elif self.type == QuestionType.true_false:
            if not isinstance(self.correct_answer, bool):
                raise ValueError("True/false questions need a boolean correct answer")
        elif self.type == QuestionType.short_answer:
            if not isinstance(self.correct_answer, str) or not self.correct_answer.strip():
                raise ValueError("Short answer questions need a non-empty correct answer")
        return self


class QuizSettings(CamelModel):
    time_limit: Optional[int] = Field(None, ge=1, le=300)
    max_attempts: int = Field(3, ge=1, le=10)
    shuffle_questions: bool = False
    shuffle_options: bool = False
    show_results_immediately: bool = True
    allow_review: bool = True
    passing_score: Optional[int] = Field(None, ge=0, le=100)

    @property
    def effective_passing_score(self) -> int:
        return DEFAULT_PASSING_SCORE if self.passing_score is None else self.passing_score


class QuizAnalytics(CamelModel):
    """Running aggregates; written only by the analytics aggregator."""
    total_attempts: int = 0
    average_score: float = 0
    completion_rate: float = 0
    average_time_minutes: float = 0


# ===== Database Model =====
class Quiz(CamelModel):
    id: str = Field(default_factory=new_id, alias="_id")
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    subject: str = Field(..., min_length=1, max_length=100)
    grade_level: Optional[str] = Field(None, max_length=50)
    questions: list[Question] = Field(..., min_length=1, max_length=MAX_QUESTIONS)
    author: str
    status: QuizStatus = QuizStatus.draft
    settings: QuizSettings = Field(default_factory=QuizSettings)
    total_points: int = 0
    estimated_time_minutes: int = Field(5, ge=1, le=300)
    tags: list[str] = Field(default_factory=list, max_length=MAX_TAGS)
    published_at: Optional[UtcDatetime] = None
    due_date: Optional[UtcDatetime] = None
    analytics: QuizAnalytics = Field(default_factory=QuizAnalytics)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    def refresh_derived_fields(self, now: Optional[datetime] = None) -> None:
        """Recompute everything that is derived on save."""
        now = now or utcnow()
        self.total_points = sum(q.points for q in self.questions)
        for question in self.questions:
            if not question.id:
                question.id = new_id()
        if self.status == QuizStatus.published and self.published_at is None:
            self.published_at = now
        self.updated_at = now

    def is_past_due(self, now: Optional[datetime] = None) -> bool:
        return self.due_date is not None and (now or utcnow()) > self.due_date


def estimate_minutes(question_count: int, time_limit: Optional[int] = None) -> int:
    """Explicit time limit, else 1.5 minutes per question with a 5 minute floor."""
    if time_limit:
        return time_limit
    return min(max(math.ceil(question_count * 1.5), 5), 300)


# ===== Request DTOs =====
class QuizSettingsInput(RequestModel):
    time_limit: Optional[int] = Field(None, ge=1, le=300)
    max_attempts: Optional[int] = Field(None, ge=1, le=10)
    shuffle_questions: Optional[bool] = None
    shuffle_options: Optional[bool] = None
    show_results_immediately: Optional[bool] = None
    allow_review: Optional[bool] = None
    passing_score: Optional[int] = Field(None, ge=0, le=100)


class QuizCreate(RequestModel):
    title: str = Field(..., max_length=200)
    description: str = Field(..., max_length=1000)
    subject: str = Field(..., max_length=100)
    grade_level: Optional[str] = Field(None, max_length=50)
    questions: list[Question] = Field(..., min_length=1, max_length=MAX_QUESTIONS)
    status: QuizStatus = QuizStatus.draft
    settings: QuizSettingsInput = Field(default_factory=QuizSettingsInput)
    tags: list[str] = Field(default_factory=list)
    due_date: Optional[UtcDatetime] = None

    @field_validator("title", "description", "subject")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("is required")
        return value

    @field_validator("tags")
    @classmethod
    def _cap_tags(cls, value: list[str]) -> list[str]:
        return value[:MAX_TAGS]


class QuizUpdate(RequestModel):
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    subject: Optional[str] = Field(None, max_length=100)
    grade_level: Optional[str] = Field(None, max_length=50)
    questions: Optional[list[Question]] = Field(None, min_length=1, max_length=MAX_QUESTIONS)
    status: Optional[QuizStatus] = None
    settings: Optional[QuizSettingsInput] = None
    tags: Optional[list[str]] = None
    due_date: Optional[UtcDatetime] = None

    @field_validator("tags")
    @classmethod
    def _cap_tags(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return value[:MAX_TAGS] if value is not None else None


class GenerateQuizRequest(RequestModel):
    topic: str = Field(..., max_length=200)
    difficulty: Difficulty
    question_count: int = Field(..., ge=1, le=20)
    question_types: list[QuestionType] = Field(..., min_length=1)
    grade_level: Optional[str] = None
    curriculum: Optional[str] = None

    @field_validator("topic")
    @classmethod
    def _topic_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Topic is required")
        return value


# ===== Generated (unsaved) quiz =====
class GeneratedQuestion(CamelModel):
    type: QuestionType
    question: str
    options: Optional[list[str]] = None
    correct_answer: CorrectAnswer
    explanation: Optional[str] = None
    points: int = 1
    difficulty: Difficulty = Difficulty.medium


class GeneratedQuiz(CamelModel):
    title: str
    description: str = ""
    questions: list[GeneratedQuestion]
    total_points: int = 0
    estimated_time_minutes: int = 0
