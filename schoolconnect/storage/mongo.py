from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import BulkWriteError, DuplicateKeyError

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

logger = logging.getLogger(__name__)

MAX_LIST = 10_000


class MongoSchoolRepository(SchoolRepository):
    def __init__(self, mongo_uri: str, db_name: str) -> None:
        self.client = AsyncIOMotorClient(mongo_uri, tz_aware=True)
        self.db = self.client[db_name]
        self.users = self.db["users"]
        self.quizzes = self.db["quizzes"]
        self.attempts = self.db["quiz_attempts"]
        self.announcements = self.db["announcements"]
        self.recipients = self.db["announcement_recipients"]

    async def init(self) -> None:
        await self.users.create_index("email", unique=True)
        await self.users.create_index("role")

        await self.quizzes.create_index([("author", ASCENDING), ("createdAt", DESCENDING)])
        await self.quizzes.create_index([("status", ASCENDING), ("publishedAt", DESCENDING)])
        await self.quizzes.create_index([("subject", ASCENDING), ("gradeLevel", ASCENDING)])
        await self.quizzes.create_index("dueDate")

        await self.attempts.create_index(
            [("student", ASCENDING), ("quiz", ASCENDING), ("attemptNumber", ASCENDING)], unique=True
        )
        await self.attempts.create_index([("quiz", ASCENDING), ("status", ASCENDING)])
        await self.attempts.create_index([("student", ASCENDING), ("startedAt", DESCENDING)])

        await self.announcements.create_index([("author", ASCENDING), ("createdAt", DESCENDING)])
        await self.announcements.create_index([("status", ASCENDING), ("publishedAt", DESCENDING)])
        await self.announcements.create_index([("audience", ASCENDING), ("priority", ASCENDING)])
        await self.announcements.create_index("scheduledFor")

        await self.recipients.create_index([("announcement", ASCENDING), ("recipient", ASCENDING)], unique=True)
        await self.recipients.create_index([("recipient", ASCENDING), ("readAt", ASCENDING)])
        await self.recipients.create_index([("announcement", ASCENDING), ("readAt", ASCENDING)])
        logger.info("MongoDB indexes ensured on %s", self.db.name)

    async def close(self) -> None:
        self.client.close()

    # ---- users ----
    async def create_user(self, user: User) -> User:
        try:
            await self.users.insert_one(user.to_doc())
        except DuplicateKeyError as exc:
            raise Conflict("User with this email already exists") from exc
        return user

    async def get_user(self, user_id: str) -> Optional[User]:
        doc = await self.users.find_one({"_id": user_id})
        return User.model_validate(doc) if doc else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        doc = await self.users.find_one({"email": email})
        return User.model_validate(doc) if doc else None

    async def list_users(self, roles: Optional[list[str]] = None) -> list[User]:
        query: dict[str, Any] = {} if roles is None else {"role": {"$in": roles}}
        docs = await self.users.find(query).to_list(length=MAX_LIST)
        return [User.model_validate(d) for d in docs]

    # ---- quizzes ----
    async def create_quiz(self, quiz: Quiz) -> Quiz:
        await self.quizzes.insert_one(quiz.to_doc())
        return quiz

    async def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        doc = await self.quizzes.find_one({"_id": quiz_id})
        return Quiz.model_validate(doc) if doc else None

    async def list_quizzes(self, flt: QuizFilter) -> list[Quiz]:
        query: dict[str, Any] = {}
        if flt.author is not None:
            query["author"] = flt.author
        if flt.statuses is not None:
            query["status"] = {"$in": flt.statuses}
        if flt.subject:
            query["subject"] = {"$regex": re.escape(flt.subject), "$options": "i"}
        if flt.grade_level is not None:
            query["gradeLevel"] = flt.grade_level
        if flt.due_after is not None:
            query["$or"] = [{"dueDate": None}, {"dueDate": {"$gt": flt.due_after}}]
        cursor = self.quizzes.find(query).sort("createdAt", -1).limit(flt.limit)
        docs = await cursor.to_list(length=flt.limit)
        return [Quiz.model_validate(d) for d in docs]

    async def save_quiz(self, quiz: Quiz) -> Quiz:
        await self.quizzes.replace_one({"_id": quiz.id}, quiz.to_doc())
        return quiz

    async def set_quiz_analytics(self, quiz_id: str, analytics: QuizAnalytics) -> None:
        await self.quizzes.update_one({"_id": quiz_id}, {"$set": {"analytics": analytics.to_doc()}})

    async def delete_quiz(self, quiz_id: str) -> None:
        await self.quizzes.delete_one({"_id": quiz_id})

    # ---- attempts ----
    async def insert_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        try:
            await self.attempts.insert_one(attempt.to_doc())
        except DuplicateKeyError as exc:
            raise DuplicateAttempt() from exc
        return attempt

    async def get_attempt(self, attempt_id: str) -> Optional[QuizAttempt]:
        doc = await self.attempts.find_one({"_id": attempt_id})
        return QuizAttempt.model_validate(doc) if doc else None

    async def find_in_progress(self, student_id: str, quiz_id: str) -> Optional[QuizAttempt]:
        doc = await self.attempts.find_one(
            {"student": student_id, "quiz": quiz_id, "status": AttemptStatus.in_progress.value}
        )
        return QuizAttempt.model_validate(doc) if doc else None

    @staticmethod
    def _attempt_query(quiz_id: str, student_id: Optional[str], statuses: Optional[list[str]]) -> dict:
        query: dict[str, Any] = {"quiz": quiz_id}
        if student_id is not None:
            query["student"] = student_id
        if statuses is not None:
            query["status"] = {"$in": list(statuses)}
        return query

    async def count_attempts(
        self, quiz_id: str, student_id: Optional[str] = None, statuses: Optional[list[str]] = None
    ) -> int:
        return await self.attempts.count_documents(self._attempt_query(quiz_id, student_id, statuses))

    async def list_attempts(
        self, quiz_id: str, student_id: Optional[str] = None, statuses: Optional[list[str]] = None
    ) -> list[QuizAttempt]:
        cursor = self.attempts.find(self._attempt_query(quiz_id, student_id, statuses)).sort("startedAt", -1)
        docs = await cursor.to_list(length=MAX_LIST)
        return [QuizAttempt.model_validate(d) for d in docs]

    async def save_attempt_progress(
        self,
        attempt_id: str,
        responses: Optional[list[QuestionResponse]],
        time_spent_minutes: Optional[float],
        now: datetime,
    ) -> bool:
        update: dict[str, Any] = {"updatedAt": now}
        if responses is not None:
            update["responses"] = [r.to_doc() for r in responses]
        if time_spent_minutes is not None:
            update["timeSpentMinutes"] = time_spent_minutes
        result = await self.attempts.update_one(
            {"_id": attempt_id, "status": AttemptStatus.in_progress.value}, {"$set": update}
        )
        return result.matched_count == 1

    async def complete_attempt(self, attempt: QuizAttempt) -> bool:
        result = await self.attempts.replace_one(
            {"_id": attempt.id, "status": AttemptStatus.in_progress.value}, attempt.to_doc()
        )
        return result.matched_count == 1

    # ---- announcements ----
    async def create_announcement(self, announcement: Announcement) -> Announcement:
        await self.announcements.insert_one(announcement.to_doc())
        return announcement

    async def get_announcement(self, announcement_id: str) -> Optional[Announcement]:
        doc = await self.announcements.find_one({"_id": announcement_id})
        return Announcement.model_validate(doc) if doc else None

    async def save_announcement(self, announcement: Announcement) -> Announcement:
        doc = announcement.to_doc()
        for key in ("_id", "emailSent", "emailSentAt"):
            doc.pop(key, None)
        await self.announcements.update_one({"_id": announcement.id}, {"$set": doc})
        return announcement

    async def mark_announcement_emailed(self, announcement_id: str, at: datetime) -> None:
        await self.announcements.update_one(
            {"_id": announcement_id}, {"$set": {"emailSent": True, "emailSentAt": at}}
        )

    async def delete_announcement(self, announcement_id: str) -> None:
        await self.recipients.delete_many({"announcement": announcement_id})
        await self.announcements.delete_one({"_id": announcement_id})

    async def list_announcements_by_author(self, author_id: str) -> list[Announcement]:
        cursor = self.announcements.find({"author": author_id}).sort("createdAt", -1)
        docs = await cursor.to_list(length=MAX_LIST)
        return [Announcement.model_validate(d) for d in docs]

    async def list_published_announcements(self, audiences: list[str], now: datetime) -> list[Announcement]:
        query = {
            "status": "published",
            "audience": {"$in": audiences},
            "$or": [{"scheduledFor": None}, {"scheduledFor": {"$lte": now}}],
        }
        docs = await self.announcements.find(query).to_list(length=MAX_LIST)
        found = [Announcement.model_validate(d) for d in docs]
        found.sort(key=lambda a: (PRIORITY_RANK[a.priority], a.published_at or a.created_at), reverse=True)
        return found

    async def add_recipients(self, announcement_id: str, recipient_ids: list[str]) -> int:
        if not recipient_ids:
            return 0
        docs = [
            AnnouncementRecipient(announcement=announcement_id, recipient=r_id).to_doc() for r_id in recipient_ids
        ]
        try:
            result = await self.recipients.insert_many(docs, ordered=False)
            return len(result.inserted_ids)
        except BulkWriteError as exc:
            details = exc.details or {}
            if any(err.get("code") != 11000 for err in details.get("writeErrors", [])):
                raise
            logger.info("Some recipients already exist for announcement %s", announcement_id)
            return int(details.get("nInserted", 0))

    async def get_recipient(self, announcement_id: str, recipient_id: str) -> Optional[AnnouncementRecipient]:
        doc = await self.recipients.find_one({"announcement": announcement_id, "recipient": recipient_id})
        return AnnouncementRecipient.model_validate(doc) if doc else None

    async def list_recipients(self, announcement_id: str) -> list[AnnouncementRecipient]:
        docs = await self.recipients.find({"announcement": announcement_id}).to_list(length=None)
        return [AnnouncementRecipient.model_validate(d) for d in docs]

    async def list_receipts_for_user(
        self, recipient_id: str, announcement_ids: list[str]
    ) -> list[AnnouncementRecipient]:
        cursor = self.recipients.find({"recipient": recipient_id, "announcement": {"$in": announcement_ids}})
        docs = await cursor.to_list(length=MAX_LIST)
        return [AnnouncementRecipient.model_validate(d) for d in docs]

    async def mark_read(self, announcement_id: str, recipient_id: str, at: datetime) -> AnnouncementRecipient:
        fresh = AnnouncementRecipient(announcement=announcement_id, recipient=recipient_id).to_doc()
        on_insert = {k: v for k, v in fresh.items() if k not in ("readAt", "updatedAt")}
        doc = await self.recipients.find_one_and_update(
            {"announcement": announcement_id, "recipient": recipient_id},
            {"$set": {"readAt": at, "updatedAt": at}, "$setOnInsert": on_insert},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return AnnouncementRecipient.model_validate(doc)

    async def mark_unread(self, announcement_id: str, recipient_id: str) -> None:
        await self.recipients.update_one(
            {"announcement": announcement_id, "recipient": recipient_id},
            {"$set": {"readAt": None, "updatedAt": utcnow()}},
        )

    async def mark_email_sent(self, announcement_id: str, recipient_id: str, at: datetime) -> None:
        await self.recipients.update_one(
            {"announcement": announcement_id, "recipient": recipient_id},
            {"$set": {"emailSent": True, "emailSentAt": at, "updatedAt": at}},
        )
