from __future__ import annotations

from typing import Optional

from pydantic import Field

from schoolconnect.models.base import CamelModel, UtcDatetime


class AttemptSummary(CamelModel):
    id: str = Field(alias="_id")
    student: Optional[str] = None
    score: int
    percentage: int
    time_spent_minutes: float
    started_at: UtcDatetime
    completed_at: Optional[UtcDatetime] = None


class QuizStatistics(CamelModel):
    """Full recomputation over a quiz's completed attempts (author view)."""
    total_attempts: int = 0
    unique_students: int = 0
    average_score: int = 0
    highest_score: int = 0
    lowest_score: int = 0
    pass_rate: int = 0
    average_time_minutes: int = 0
    attempts: list[AttemptSummary] = Field(default_factory=list)


class StudentProgress(CamelModel):
    """A single student's standing on one quiz."""
    attempt_count: int = 0
    max_attempts: int
    best_score: int = 0
    best_percentage: int = 0
    can_retake: bool = True
    last_attempt_at: Optional[UtcDatetime] = None
    attempts: Optional[list[AttemptSummary]] = None
