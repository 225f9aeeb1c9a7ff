"""
Attempt lifecycle: admission, progress saves and final submission.

    in_progress --submit--> completed
    in_progress ----------> abandoned | time_expired   (no path yet)

Terminal states never transition. Writes that depend on the attempt still
being in progress are compare-and-set in the repository, so a concurrent
second submit loses instead of rewriting the score.
"""

from __future__ import annotations

import logging
from typing import Optional

from schoolconnect.errors import (
    AttemptLimitReached,
    AttemptNotInProgress,
    Conflict,
    DeadlineExpired,
    DuplicateAttempt,
    Forbidden,
    NotFound,
)
from schoolconnect.models import (
    AttemptStatus,
    ProgressSaveRequest,
    QuestionResponse,
    Quiz,
    QuizAttempt,
    QuizStatus,
    SubmitRequest,
    User,
    UserRole,
)
from schoolconnect.models.attempt import ResponseInput
from schoolconnect.models.base import utcnow
from schoolconnect.observability import get_tracer
from schoolconnect.services.analytics import TERMINAL_STATUS_VALUES, AnalyticsService, percentage_of
from schoolconnect.services.grading import grade_response
from schoolconnect.storage.repo import SchoolRepository

logger = logging.getLogger(__name__)


def grade_submission(quiz: Quiz, submitted: list[ResponseInput]) -> list[QuestionResponse]:
    """One graded response per quiz question, in quiz order.

    Missing answers grade as incorrect; answers to unknown question ids are dropped.
    """
    by_question: dict[str, ResponseInput] = {}
    for item in submitted:
        by_question.setdefault(item.question_id, item)

    unknown = set(by_question) - {q.id for q in quiz.questions}
    if unknown:
        logger.info("Dropping %d response(s) for unknown questions on quiz %s", len(unknown), quiz.id)

    graded: list[QuestionResponse] = []
    for question in quiz.questions:
        item = by_question.get(question.id)
        answer = item.answer if item else None
        result = grade_response(question, answer)
        graded.append(
            QuestionResponse(
                question_id=question.id,
                answer=answer,
                is_correct=result.is_correct,
                points_earned=result.points_earned,
                time_spent_seconds=item.time_spent_seconds if item else 0,
            )
        )
    return graded


class AttemptService:
    def __init__(self, repo: SchoolRepository, analytics: AnalyticsService) -> None:
        self.repo = repo
        self.analytics = analytics

    # ---- admission ----
    async def start_attempt(
        self,
        quiz_id: str,
        user: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> tuple[QuizAttempt, bool]:
        """Start or resume an attempt. Returns (attempt, created)."""
        if user.role != UserRole.student:
            raise Forbidden("Only students can take quizzes")

        quiz = await self.repo.get_quiz(quiz_id)
        if quiz is None:
            raise NotFound("Quiz not found")
        if quiz.status != QuizStatus.published:
            raise Forbidden("Quiz is not available")
        if quiz.is_past_due():
            raise DeadlineExpired()

        terminal = await self.repo.count_attempts(quiz.id, user.id, TERMINAL_STATUS_VALUES)
        if terminal >= quiz.settings.max_attempts:
            raise AttemptLimitReached(f"Maximum {quiz.settings.max_attempts} attempts reached")

        existing = await self.repo.find_in_progress(user.id, quiz.id)
        if existing is not None:
            logger.info("Resuming attempt %s for student %s on quiz %s", existing.id, user.id, quiz.id)
            return existing, False

        attempt = QuizAttempt(
            quiz=quiz.id,
            student=user.id,
            attempt_number=terminal + 1,
            max_score=quiz.total_points,
            ip_address=(ip_address or "unknown")[:45],
            user_agent=(user_agent or "unknown")[:500],
        )
        try:
            await self.repo.insert_attempt(attempt)
        except DuplicateAttempt:
            # A concurrent start won the unique index; hand back its attempt.
            winner = await self.repo.find_in_progress(user.id, quiz.id)
            if winner is None:
                raise Conflict("Attempt could not be started, please retry")
            logger.info("Concurrent start for student %s on quiz %s resolved to %s", user.id, quiz.id, winner.id)
            return winner, False

        logger.info("Started attempt %s (#%d) for student %s on quiz %s", attempt.id, attempt.attempt_number, user.id, quiz.id)
        return attempt, True

    async def current_attempt(self, quiz_id: str, user: User) -> Optional[QuizAttempt]:
        return await self.repo.find_in_progress(user.id, quiz_id)

    async def attempt_history(self, quiz_id: str, user: User) -> list[QuizAttempt]:
        return await self.repo.list_attempts(quiz_id, student_id=user.id)

    # ---- state machine ----
    async def _owned_attempt(self, attempt_id: str, user: User) -> QuizAttempt:
        attempt = await self.repo.get_attempt(attempt_id)
        if attempt is None:
            raise NotFound("Quiz attempt not found")
        if attempt.student != user.id:
            raise Forbidden("Access denied")
        if attempt.is_terminal:
            raise AttemptNotInProgress()
        return attempt

    async def save_progress(self, attempt_id: str, user: User, req: ProgressSaveRequest) -> None:
        """Autosave: store ungraded answers and elapsed time. Last write wins."""
        await self._owned_attempt(attempt_id, user)

        responses = None
        if req.responses is not None:
            responses = [
                QuestionResponse(
                    question_id=r.question_id,
                    answer=r.answer,
                    is_correct=False,
                    points_earned=0,
                    time_spent_seconds=r.time_spent_seconds,
                )
                for r in req.responses
            ]

        saved = await self.repo.save_attempt_progress(attempt_id, responses, req.time_spent_minutes, utcnow())
        if not saved:
            raise AttemptNotInProgress()

    async def submit(self, attempt_id: str, user: User, req: SubmitRequest) -> QuizAttempt:
        """Grade every question, finalize the attempt, then fold it into quiz analytics."""
        with get_tracer().start_as_current_span("attempt.submit") as span:
            span.set_attribute("attempt.id", attempt_id)
            if user.role != UserRole.student:
                raise Forbidden("Only students can submit quiz attempts")

            attempt = await self._owned_attempt(attempt_id, user)
            quiz = await self.repo.get_quiz(attempt.quiz)
            if quiz is None:
                raise NotFound("Quiz not found")

            graded = grade_submission(quiz, req.responses)
            earned = sum(r.points_earned for r in graded)
            score = min(earned, attempt.max_score)
            if earned > attempt.max_score:
                logger.warning(
                    "Attempt %s earned %d of %d points; quiz %s changed after admission, capping",
                    attempt.id, earned, attempt.max_score, quiz.id,
                )

            now = utcnow()
            attempt.responses = graded
            attempt.score = score
            attempt.percentage = percentage_of(score, attempt.max_score)
            attempt.time_spent_minutes = req.time_spent_minutes
            attempt.status = AttemptStatus.completed.value
            attempt.completed_at = now
            attempt.submitted_at = now
            attempt.updated_at = now

            if not await self.repo.complete_attempt(attempt):
                raise AttemptNotInProgress()
            span.set_attribute("attempt.percentage", attempt.percentage)
            logger.info("Attempt %s submitted: %d/%d (%d%%)", attempt.id, score, attempt.max_score, attempt.percentage)

        try:
            await self.analytics.record_submission(quiz.id, attempt.percentage, attempt.time_spent_minutes)
        except Exception:
            logger.exception("Failed to update analytics for quiz %s after attempt %s", quiz.id, attempt.id)
        return attempt
