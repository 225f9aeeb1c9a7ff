"""
Announcement models for SchoolConnect.
An announcement is authored by a teacher and fanned out to one
AnnouncementRecipient row per targeted user.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from schoolconnect.models.base import CamelModel, RequestModel, UtcDatetime, new_id, utcnow
from schoolconnect.models.user import UserRole


class AnnouncementPriority(str, Enum):
    low = "low"
    normal = "normal"
    urgent = "urgent"


class Audience(str, Enum):
    all = "all"
    students = "students"
    parents = "parents"
    teachers = "teachers"


class AnnouncementStatus(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


PRIORITY_RANK = {"urgent": 2, "normal": 1, "low": 0}

AUDIENCE_ROLES = {
    Audience.students.value: UserRole.student.value,
    Audience.parents.value: UserRole.parent.value,
    Audience.teachers.value: UserRole.teacher.value,
}


def audience_for_role(role: str) -> str:
    return f"{role}s"


def roles_for_audience(audience: list[str]) -> Optional[list[str]]:
    """Roles addressed by an audience list; None means everyone."""
    if Audience.all.value in audience:
        return None
    return [AUDIENCE_ROLES[aud] for aud in audience if aud in AUDIENCE_ROLES]


# ===== Database Models =====
class Announcement(CamelModel):
    id: str = Field(default_factory=new_id, alias="_id")
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=5000)
    priority: AnnouncementPriority = AnnouncementPriority.normal
    audience: list[Audience] = Field(..., min_length=1)
    author: str
    status: AnnouncementStatus = AnnouncementStatus.draft
    published_at: Optional[UtcDatetime] = None
    scheduled_for: Optional[UtcDatetime] = None
    send_email: bool = True
    email_sent: bool = False
    email_sent_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    def targets_role(self, role: str) -> bool:
        return Audience.all.value in self.audience or audience_for_role(role) in self.audience


class AnnouncementRecipient(CamelModel):
    """Read receipt and email delivery state for one (announcement, recipient) pair."""
    id: str = Field(default_factory=new_id, alias="_id")
    announcement: str
    recipient: str
    read_at: Optional[UtcDatetime] = None
    email_sent: bool = False
    email_sent_at: Optional[UtcDatetime] = None
    email_delivered: bool = False
    email_delivered_at: Optional[UtcDatetime] = None
    email_opened: bool = False
    email_opened_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


class AnnouncementAnalytics(CamelModel):
    total_recipients: int = 0
    read_count: int = 0
    emails_sent: int = 0
    emails_delivered: int = 0
    emails_opened: int = 0
    read_percentage: float = 0
    email_open_rate: float = 0

    @classmethod
    def from_recipients(cls, recipients: list[AnnouncementRecipient]) -> "AnnouncementAnalytics":
        total = len(recipients)
        read = sum(1 for r in recipients if r.read_at is not None)
        sent = sum(1 for r in recipients if r.email_sent)
        opened = sum(1 for r in recipients if r.email_opened)
        return cls(
            total_recipients=total,
            read_count=read,
            emails_sent=sent,
            emails_delivered=sum(1 for r in recipients if r.email_delivered),
            emails_opened=opened,
            read_percentage=(read / total * 100) if total else 0,
            email_open_rate=(opened / sent * 100) if sent else 0,
        )


# ===== Request DTOs =====
class AnnouncementCreate(RequestModel):
    title: str = Field(..., max_length=200)
    content: str = Field(..., max_length=5000)
    priority: AnnouncementPriority = AnnouncementPriority.normal
    audience: list[Audience] = Field(..., min_length=1)
    status: AnnouncementStatus = AnnouncementStatus.draft
    scheduled_for: Optional[UtcDatetime] = None
    send_email: bool = True

    @field_validator("title", "content")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("is required")
        return value

    @field_validator("status")
    @classmethod
    def _no_archived_on_create(cls, value: str) -> str:
        if value == AnnouncementStatus.archived:
            raise ValueError("New announcements must be draft or published")
        return value


class AnnouncementUpdate(RequestModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1, max_length=5000)
    priority: Optional[AnnouncementPriority] = None
    audience: Optional[list[Audience]] = Field(None, min_length=1)
    status: Optional[AnnouncementStatus] = None
    scheduled_for: Optional[UtcDatetime] = None
    send_email: Optional[bool] = None
