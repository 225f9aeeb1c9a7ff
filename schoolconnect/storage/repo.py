from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from schoolconnect.models import (
    Announcement,
    AnnouncementRecipient,
    QuestionResponse,
    Quiz,
    QuizAnalytics,
    QuizAttempt,
    User,
)


@dataclass
class QuizFilter:
    author: Optional[str] = None
    statuses: Optional[list[str]] = None
    subject: Optional[str] = None
    grade_level: Optional[str] = None
    due_after: Optional[datetime] = None
    limit: int = 50


class SchoolRepository(ABC):
    """Persistence for users, quizzes, attempts and announcements.

    Lookups return None when the record is absent; callers decide whether
    that is a 404.
    """

    # ---- users ----
    @abstractmethod
    async def create_user(self, user: User) -> User:
        """Insert a user; raises Conflict when the email is taken."""
        raise NotImplementedError

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        raise NotImplementedError

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    @abstractmethod
    async def list_users(self, roles: Optional[list[str]] = None) -> list[User]:
        """All users, or only those holding one of ``roles``."""
        raise NotImplementedError

    # ---- quizzes ----
    @abstractmethod
    async def create_quiz(self, quiz: Quiz) -> Quiz:
        raise NotImplementedError

    @abstractmethod
    async def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        raise NotImplementedError

    @abstractmethod
    async def list_quizzes(self, flt: QuizFilter) -> list[Quiz]:
        """Newest first. ``due_after`` keeps quizzes with no due date or one later than it."""
        raise NotImplementedError

    @abstractmethod
    async def save_quiz(self, quiz: Quiz) -> Quiz:
        raise NotImplementedError

    @abstractmethod
    async def set_quiz_analytics(self, quiz_id: str, analytics: QuizAnalytics) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete_quiz(self, quiz_id: str) -> None:
        raise NotImplementedError

    # ---- attempts ----
    @abstractmethod
    async def insert_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        """Raises DuplicateAttempt when (student, quiz, attemptNumber) exists."""
        raise NotImplementedError

    @abstractmethod
    async def get_attempt(self, attempt_id: str) -> Optional[QuizAttempt]:
        raise NotImplementedError

    @abstractmethod
    async def find_in_progress(self, student_id: str, quiz_id: str) -> Optional[QuizAttempt]:
        raise NotImplementedError

    @abstractmethod
    async def count_attempts(
        self, quiz_id: str, student_id: Optional[str] = None, statuses: Optional[list[str]] = None
    ) -> int:
        raise NotImplementedError

    @abstractmethod
    async def list_attempts(
        self, quiz_id: str, student_id: Optional[str] = None, statuses: Optional[list[str]] = None
    ) -> list[QuizAttempt]:
        """Newest ``startedAt`` first."""
        raise NotImplementedError

    @abstractmethod
    async def save_attempt_progress(
        self,
        attempt_id: str,
        responses: Optional[list[QuestionResponse]],
        time_spent_minutes: Optional[float],
        now: datetime,
    ) -> bool:
        """Overwrite responses/time while the attempt is in progress. False if it no longer is."""
        raise NotImplementedError

    @abstractmethod
    async def complete_attempt(self, attempt: QuizAttempt) -> bool:
        """Persist a graded attempt only if the stored one is still in progress."""
        raise NotImplementedError

    # ---- announcements ----
    @abstractmethod
    async def create_announcement(self, announcement: Announcement) -> Announcement:
        raise NotImplementedError

    @abstractmethod
    async def get_announcement(self, announcement_id: str) -> Optional[Announcement]:
        raise NotImplementedError

    @abstractmethod
    async def save_announcement(self, announcement: Announcement) -> Announcement:
        """Write the authored fields. Delivery state (emailSent, emailSentAt) is left as stored."""
        raise NotImplementedError

    @abstractmethod
    async def mark_announcement_emailed(self, announcement_id: str, at: datetime) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete_announcement(self, announcement_id: str) -> None:
        """Removes the announcement and all of its recipient rows."""
        raise NotImplementedError

    @abstractmethod
    async def list_announcements_by_author(self, author_id: str) -> list[Announcement]:
        raise NotImplementedError

    @abstractmethod
    async def list_published_announcements(self, audiences: list[str], now: datetime) -> list[Announcement]:
        """Published, not scheduled in the future, addressed to any of ``audiences``."""
        raise NotImplementedError

    @abstractmethod
    async def add_recipients(self, announcement_id: str, recipient_ids: list[str]) -> int:
        """Insert recipient rows, skipping pairs that already exist. Returns the number inserted."""
        raise NotImplementedError

    @abstractmethod
    async def get_recipient(self, announcement_id: str, recipient_id: str) -> Optional[AnnouncementRecipient]:
        raise NotImplementedError

    @abstractmethod
    async def list_recipients(self, announcement_id: str) -> list[AnnouncementRecipient]:
        raise NotImplementedError

    @abstractmethod
    async def list_receipts_for_user(
        self, recipient_id: str, announcement_ids: list[str]
    ) -> list[AnnouncementRecipient]:
        raise NotImplementedError

    @abstractmethod
    async def mark_read(self, announcement_id: str, recipient_id: str, at: datetime) -> AnnouncementRecipient:
        """Upsert the recipient row with ``readAt``."""
        raise NotImplementedError

    @abstractmethod
    async def mark_unread(self, announcement_id: str, recipient_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def mark_email_sent(self, announcement_id: str, recipient_id: str, at: datetime) -> None:
        raise NotImplementedError

    async def init(self) -> None:
        """Prepare the backing store (indexes etc.). Called once at startup."""
        return None

    async def close(self) -> None:
        return None
