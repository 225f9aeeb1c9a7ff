from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from schoolconnect.errors import Conflict, DuplicateAttempt
from schoolconnect.models import (
    Announcement,
    AnnouncementRecipient,
    AttemptStatus,
    QuestionResponse,
    Quiz,
    QuizAnalytics,
    QuizAttempt,
    User,
)
from schoolconnect.models.announcement import PRIORITY_RANK
from schoolconnect.models.base import utcnow
from schoolconnect.storage.repo import QuizFilter, SchoolRepository


def _copy(model):
    return model.model_copy(deep=True) if model is not None else None


class InMemorySchoolRepository(SchoolRepository):
    """Dict-backed store. Records are copied in and out so callers never share state."""

    def __init__(self) -> None:
        self.users: Dict[str, User] = {}
        self.quizzes: Dict[str, Quiz] = {}
        self.attempts: Dict[str, QuizAttempt] = {}
        self.announcements: Dict[str, Announcement] = {}
        self.recipients: Dict[Tuple[str, str], AnnouncementRecipient] = {}

    # ---- users ----
    async def create_user(self, user: User) -> User:
        if any(u.email == user.email for u in self.users.values()):
            raise Conflict("User with this email already exists")
        self.users[user.id] = _copy(user)
        return user

    async def get_user(self, user_id: str) -> Optional[User]:
        return _copy(self.users.get(user_id))

    async def get_user_by_email(self, email: str) -> Optional[User]:
        for user in self.users.values():
            if user.email == email:
                return _copy(user)
        return None

    async def list_users(self, roles: Optional[list[str]] = None) -> list[User]:
        return [_copy(u) for u in self.users.values() if roles is None or u.role in roles]

    # ---- quizzes ----
    async def create_quiz(self, quiz: Quiz) -> Quiz:
        self.quizzes[quiz.id] = _copy(quiz)
        return quiz

    async def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        return _copy(self.quizzes.get(quiz_id))

    async def list_quizzes(self, flt: QuizFilter) -> list[Quiz]:
        out: List[Quiz] = []
        for quiz in self.quizzes.values():
            if flt.author is not None and quiz.author != flt.author:
                continue
            if flt.statuses is not None and quiz.status not in flt.statuses:
                continue
            if flt.subject and flt.subject.lower() not in quiz.subject.lower():
                continue
            if flt.grade_level is not None and quiz.grade_level != flt.grade_level:
                continue
            if flt.due_after is not None and quiz.due_date is not None and quiz.due_date <= flt.due_after:
                continue
            out.append(_copy(quiz))
        out.sort(key=lambda q: q.created_at, reverse=True)
        return out[: flt.limit]

    async def save_quiz(self, quiz: Quiz) -> Quiz:
        self.quizzes[quiz.id] = _copy(quiz)
        return quiz

    async def set_quiz_analytics(self, quiz_id: str, analytics: QuizAnalytics) -> None:
        quiz = self.quizzes.get(quiz_id)
        if quiz is not None:
            quiz.analytics = _copy(analytics)

    async def delete_quiz(self, quiz_id: str) -> None:
        self.quizzes.pop(quiz_id, None)

    # ---- attempts ----
    async def insert_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        # Check and insert run without an await in between, like a unique index.
        for existing in self.attempts.values():
            if (
                existing.student == attempt.student
                and existing.quiz == attempt.quiz
                and existing.attempt_number == attempt.attempt_number
            ):
                raise DuplicateAttempt()
        self.attempts[attempt.id] = _copy(attempt)
        return attempt

    async def get_attempt(self, attempt_id: str) -> Optional[QuizAttempt]:
        return _copy(self.attempts.get(attempt_id))

    async def find_in_progress(self, student_id: str, quiz_id: str) -> Optional[QuizAttempt]:
        for attempt in self.attempts.values():
            if (
                attempt.student == student_id
                and attempt.quiz == quiz_id
                and attempt.status == AttemptStatus.in_progress
            ):
                return _copy(attempt)
        return None

    def _matching(self, quiz_id: str, student_id: Optional[str], statuses: Optional[list[str]]):
        for attempt in self.attempts.values():
            if attempt.quiz != quiz_id:
                continue
            if student_id is not None and attempt.student != student_id:
                continue
            if statuses is not None and attempt.status not in statuses:
                continue
            yield attempt

    async def count_attempts(
        self, quiz_id: str, student_id: Optional[str] = None, statuses: Optional[list[str]] = None
    ) -> int:
        return sum(1 for _ in self._matching(quiz_id, student_id, statuses))

    async def list_attempts(
        self, quiz_id: str, student_id: Optional[str] = None, statuses: Optional[list[str]] = None
    ) -> list[QuizAttempt]:
        found = [_copy(a) for a in self._matching(quiz_id, student_id, statuses)]
        found.sort(key=lambda a: a.started_at, reverse=True)
        return found

    async def save_attempt_progress(
        self,
        attempt_id: str,
        responses: Optional[list[QuestionResponse]],
        time_spent_minutes: Optional[float],
        now: datetime,
    ) -> bool:
        stored = self.attempts.get(attempt_id)
        if stored is None or stored.status != AttemptStatus.in_progress:
            return False
        if responses is not None:
            stored.responses = [_copy(r) for r in responses]
        if time_spent_minutes is not None:
            stored.time_spent_minutes = time_spent_minutes
        stored.updated_at = now
        return True

    async def complete_attempt(self, attempt: QuizAttempt) -> bool:
        stored = self.attempts.get(attempt.id)
        if stored is None or stored.status != AttemptStatus.in_progress:
            return False
        self.attempts[attempt.id] = _copy(attempt)
        return True

    # ---- announcements ----
    async def create_announcement(self, announcement: Announcement) -> Announcement:
        self.announcements[announcement.id] = _copy(announcement)
        return announcement

    async def get_announcement(self, announcement_id: str) -> Optional[Announcement]:
        return _copy(self.announcements.get(announcement_id))

    async def save_announcement(self, announcement: Announcement) -> Announcement:
        stored = self.announcements.get(announcement.id)
        if stored is None:
            return announcement
        delivery = {"email_sent": stored.email_sent, "email_sent_at": stored.email_sent_at}
        self.announcements[announcement.id] = announcement.model_copy(update=delivery, deep=True)
        return announcement

    async def mark_announcement_emailed(self, announcement_id: str, at: datetime) -> None:
        announcement = self.announcements.get(announcement_id)
        if announcement is not None:
            announcement.email_sent = True
            announcement.email_sent_at = at

    async def delete_announcement(self, announcement_id: str) -> None:
        self.announcements.pop(announcement_id, None)
        for key in [k for k in self.recipients if k[0] == announcement_id]:
            del self.recipients[key]

    async def list_announcements_by_author(self, author_id: str) -> list[Announcement]:
        found = [_copy(a) for a in self.announcements.values() if a.author == author_id]
        found.sort(key=lambda a: a.created_at, reverse=True)
        return found

    async def list_published_announcements(self, audiences: list[str], now: datetime) -> list[Announcement]:
        found = [
            _copy(a)
            for a in self.announcements.values()
            if a.status == "published"
            and (a.scheduled_for is None or a.scheduled_for <= now)
            and any(aud in a.audience for aud in audiences)
        ]
        found.sort(key=lambda a: (PRIORITY_RANK[a.priority], a.published_at or a.created_at), reverse=True)
        return found

    async def add_recipients(self, announcement_id: str, recipient_ids: list[str]) -> int:
        inserted = 0
        for recipient_id in recipient_ids:
            key = (announcement_id, recipient_id)
            if key in self.recipients:
                continue
            self.recipients[key] = AnnouncementRecipient(announcement=announcement_id, recipient=recipient_id)
            inserted += 1
        return inserted

    async def get_recipient(self, announcement_id: str, recipient_id: str) -> Optional[AnnouncementRecipient]:
        return _copy(self.recipients.get((announcement_id, recipient_id)))

    async def list_recipients(self, announcement_id: str) -> list[AnnouncementRecipient]:
        return [_copy(r) for (a_id, _), r in self.recipients.items() if a_id == announcement_id]

    async def list_receipts_for_user(
        self, recipient_id: str, announcement_ids: list[str]
    ) -> list[AnnouncementRecipient]:
        wanted = set(announcement_ids)
        return [
            _copy(r) for (a_id, r_id), r in self.recipients.items() if r_id == recipient_id and a_id in wanted
        ]

    async def mark_read(self, announcement_id: str, recipient_id: str, at: datetime) -> AnnouncementRecipient:
        key = (announcement_id, recipient_id)
        row = self.recipients.get(key)
        if row is None:
            row = AnnouncementRecipient(announcement=announcement_id, recipient=recipient_id)
            self.recipients[key] = row
        row.read_at = at
        row.updated_at = at
        return _copy(row)

    async def mark_unread(self, announcement_id: str, recipient_id: str) -> None:
        row = self.recipients.get((announcement_id, recipient_id))
        if row is not None:
            row.read_at = None
            row.updated_at = utcnow()

    async def mark_email_sent(self, announcement_id: str, recipient_id: str, at: datetime) -> None:
        row = self.recipients.get((announcement_id, recipient_id))
        if row is not None:
            row.email_sent = True
            row.email_sent_at = at
            row.updated_at = at
