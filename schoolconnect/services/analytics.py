"""
Quiz analytics.

Two views over the same attempts:
  - a running aggregate folded in O(1) per completed submission
    (stored on the quiz document), and
  - a full recomputation over a quiz's completed attempts for the
    author's detail view.
Both define "average score" as the mean of per-attempt percentages.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from schoolconnect.models import AttemptStatus, Quiz, QuizAnalytics, QuizAttempt
from schoolconnect.models.analytics import AttemptSummary, QuizStatistics, StudentProgress
from schoolconnect.models.attempt import TERMINAL_STATUSES
from schoolconnect.storage.repo import SchoolRepository

logger = logging.getLogger(__name__)

TERMINAL_STATUS_VALUES = [s.value for s in TERMINAL_STATUSES]


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves towards +infinity (the classic ``Math.round``), not to even."""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    return int(round_half_up(value))


def percentage_of(score: int, max_score: int) -> int:
    if max_score <= 0:
        return 0
    return round_int(100 * score / max_score)


def fold_analytics(prev: QuizAnalytics, score_percentage: float, time_minutes: float, completed: bool = True) -> QuizAnalytics:
    """Incremental-mean update with one new attempt."""
    old_count = prev.total_attempts
    new_count = old_count + 1
    avg_score = (prev.average_score * old_count + score_percentage) / new_count
    avg_time = (prev.average_time_minutes * old_count + time_minutes) / new_count
    completed_so_far = round_int(prev.completion_rate * old_count / 100) + (1 if completed else 0)
    completion_rate = completed_so_far / new_count * 100
    return QuizAnalytics(
        total_attempts=new_count,
        average_score=round_half_up(avg_score, 2),
        average_time_minutes=round_half_up(avg_time, 2),
        completion_rate=round_half_up(completion_rate, 2),
    )


def summarize(attempt: QuizAttempt, with_student: bool = True) -> AttemptSummary:
    return AttemptSummary(
        id=attempt.id,
        student=attempt.student if with_student else None,
        score=attempt.score,
        percentage=attempt.percentage,
        time_spent_minutes=attempt.time_spent_minutes,
        started_at=attempt.started_at,
        completed_at=attempt.completed_at,
    )


def compute_statistics(quiz: Quiz, completed: list[QuizAttempt]) -> QuizStatistics:
    if not completed:
        return QuizStatistics()

    scores = [a.percentage for a in completed]
    times = [a.time_spent_minutes for a in completed]
    passing = quiz.settings.effective_passing_score
    passed = sum(1 for s in scores if s >= passing)
    return QuizStatistics(
        total_attempts=len(completed),
        unique_students=len({a.student for a in completed}),
        average_score=round_int(sum(scores) / len(scores)),
        highest_score=max(scores),
        lowest_score=min(scores),
        pass_rate=round_int(passed / len(completed) * 100),
        average_time_minutes=round_int(sum(times) / len(times)),
        attempts=[summarize(a) for a in completed],
    )


def compute_student_progress(
    quiz: Quiz, terminal_count: int, completed: list[QuizAttempt], include_attempts: bool = False
) -> StudentProgress:
    ranked = sorted(completed, key=lambda a: a.percentage, reverse=True)
    best: Optional[QuizAttempt] = ranked[0] if ranked else None
    max_attempts = quiz.settings.max_attempts
    return StudentProgress(
        attempt_count=terminal_count,
        max_attempts=max_attempts,
        best_score=best.score if best else 0,
        best_percentage=best.percentage if best else 0,
        can_retake=terminal_count < max_attempts,
        last_attempt_at=max((a.started_at for a in completed), default=None),
        attempts=[summarize(a, with_student=False) for a in ranked] if include_attempts else None,
    )


class AnalyticsService:
    def __init__(self, repo: SchoolRepository) -> None:
        self.repo = repo

    async def record_submission(self, quiz_id: str, score_percentage: float, time_minutes: float) -> Optional[QuizAnalytics]:
        quiz = await self.repo.get_quiz(quiz_id)
        if quiz is None:
            logger.warning("Analytics skipped: quiz %s no longer exists", quiz_id)
            return None
        updated = fold_analytics(quiz.analytics, score_percentage, time_minutes, completed=True)
        await self.repo.set_quiz_analytics(quiz_id, updated)
        return updated

    async def quiz_statistics(self, quiz: Quiz) -> QuizStatistics:
        completed = await self.repo.list_attempts(quiz.id, statuses=[AttemptStatus.completed.value])
        return compute_statistics(quiz, completed)

    async def student_progress(self, quiz: Quiz, student_id: str, include_attempts: bool = False) -> StudentProgress:
        terminal = await self.repo.count_attempts(quiz.id, student_id, TERMINAL_STATUS_VALUES)
        completed = await self.repo.list_attempts(quiz.id, student_id, [AttemptStatus.completed.value])
        return compute_student_progress(quiz, terminal, completed, include_attempts)
