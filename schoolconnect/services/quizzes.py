"""
Quiz management: authoring, listing and the role-aware detail view.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError

from schoolconnect.errors import Forbidden, NotFound, ValidationFailed
from schoolconnect.models import Quiz, QuizCreate, QuizSettings, QuizStatus, QuizUpdate, User, UserRole
from schoolconnect.models.base import utcnow
from schoolconnect.models.quiz import estimate_minutes
from schoolconnect.services.analytics import AnalyticsService
from schoolconnect.storage.repo import QuizFilter, SchoolRepository

logger = logging.getLogger(__name__)

LIST_LIMIT = 50


class QuizService:
    def __init__(self, repo: SchoolRepository, analytics: AnalyticsService) -> None:
        self.repo = repo
        self.analytics = analytics

    async def create(self, req: QuizCreate, author: User) -> Quiz:
        if author.role != UserRole.teacher:
            raise Forbidden("Only teachers can create quizzes")

        settings = QuizSettings(**req.settings.model_dump(exclude_none=True))
        quiz = Quiz(
            title=req.title,
            description=req.description,
            subject=req.subject,
            grade_level=req.grade_level.strip() if req.grade_level else None,
            questions=req.questions,
            author=author.id,
            status=req.status,
            settings=settings,
            estimated_time_minutes=estimate_minutes(len(req.questions), settings.time_limit),
            tags=req.tags,
            due_date=req.due_date,
        )
        quiz.refresh_derived_fields()
        await self.repo.create_quiz(quiz)
        logger.info("Quiz %s created by %s with %d questions", quiz.id, author.id, len(quiz.questions))
        return quiz

    async def list_for(
        self,
        user: User,
        *,
        authored: bool = False,
        status: Optional[str] = None,
        subject: Optional[str] = None,
        grade_level: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        flt = QuizFilter(subject=subject or None, grade_level=grade_level or None, limit=LIST_LIMIT)
        if user.role == UserRole.teacher and authored:
            flt.author = user.id
            if status in {s.value for s in QuizStatus}:
                flt.statuses = [status]
        else:
            flt.statuses = [QuizStatus.published.value]
            if user.role != UserRole.teacher:
                flt.due_after = utcnow()

        quizzes = await self.repo.list_quizzes(flt)
        out: list[dict[str, Any]] = []
        for quiz in quizzes:
            item = quiz.to_wire()
            if user.role == UserRole.student:
                progress = await self.analytics.student_progress(quiz, user.id)
                item["studentProgress"] = progress.model_dump(by_alias=True, mode="json", exclude={"attempts"})
            out.append(item)
        return out

    async def get_owned(self, quiz_id: str, user: User, action: str) -> Quiz:
        if user.role != UserRole.teacher:
            raise Forbidden(f"Only teachers can {action} quizzes")
        quiz = await self.repo.get_quiz(quiz_id)
        if quiz is None:
            raise NotFound("Quiz not found")
        if quiz.author != user.id:
            raise Forbidden(f"You can only {action} your own quizzes")
        return quiz

    async def detail(self, quiz_id: str, user: User) -> dict[str, Any]:
        """Author sees any status plus statistics; others only published, students with progress."""
        quiz = await self.repo.get_quiz(quiz_id)
        if quiz is None:
            raise NotFound("Quiz not found")

        is_author = quiz.author == user.id
        if not is_author and quiz.status != QuizStatus.published:
            raise Forbidden("Access denied")

        data = quiz.to_wire()
        if user.role == UserRole.student:
            progress = await self.analytics.student_progress(quiz, user.id, include_attempts=True)
            data["studentProgress"] = progress.to_wire()
        if is_author:
            data["statistics"] = (await self.analytics.quiz_statistics(quiz)).to_wire()
        return data

    async def update(self, quiz_id: str, req: QuizUpdate, user: User) -> Quiz:
        quiz = await self.get_owned(quiz_id, user, "update")
        patch = req.model_dump(exclude_unset=True)

        for field in ("title", "description", "subject"):
            if patch.get(field) is not None:
                setattr(quiz, field, patch[field].strip())
        if "grade_level" in patch:
            quiz.grade_level = patch["grade_level"].strip() if patch["grade_level"] else None
        if patch.get("questions") is not None:
            quiz.questions = req.questions
        if patch.get("status") is not None:
            quiz.status = patch["status"]
        merged_settings = None
        if req.settings is not None:
            merged_settings = quiz.settings.model_dump() | req.settings.model_dump(exclude_unset=True)
        if "tags" in patch:
            quiz.tags = patch["tags"] or []
        if "due_date" in patch:
            quiz.due_date = patch["due_date"]

        # Re-validate the whole document so merged values still satisfy the model.
        try:
            if merged_settings is not None:
                quiz.settings = QuizSettings(**merged_settings)
            quiz = Quiz.model_validate(quiz.model_dump(by_alias=True))
        except ValidationError as e:
            raise ValidationFailed.from_pydantic(e) from e
        quiz.refresh_derived_fields()
        await self.repo.save_quiz(quiz)
        logger.info("Quiz %s updated by %s", quiz.id, user.id)
        return quiz

    async def delete(self, quiz_id: str, user: User) -> str:
        """Delete a quiz with no attempts; archive one that has any. Returns the message."""
        quiz = await self.get_owned(quiz_id, user, "delete")
        if await self.repo.count_attempts(quiz.id) > 0:
            quiz.status = QuizStatus.archived.value
            quiz.refresh_derived_fields()
            await self.repo.save_quiz(quiz)
            logger.info("Quiz %s archived instead of deleted (attempts exist)", quiz.id)
            return "Quiz archived due to existing student attempts"

        await self.repo.delete_quiz(quiz.id)
        logger.info("Quiz %s deleted", quiz.id)
        return "Quiz deleted successfully"
