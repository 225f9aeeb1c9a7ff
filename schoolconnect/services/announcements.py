"""
Announcements: authoring, audience views, read receipts and email fan-out.

Publishing never fails because of delivery. Recipient rows and emails are
produced after the announcement is stored, outside the request that
published it; errors there are logged only.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from pydantic import ValidationError

from schoolconnect.email.client import EmailClient, EmailMessage
from schoolconnect.email.templates import announcement_html, announcement_subject
from schoolconnect.errors import Forbidden, NotFound, ValidationFailed
from schoolconnect.models import (
    Announcement,
    AnnouncementAnalytics,
    AnnouncementCreate,
    AnnouncementStatus,
    AnnouncementUpdate,
    User,
    UserRole,
)
from schoolconnect.models.announcement import audience_for_role, roles_for_audience
from schoolconnect.models.base import utcnow
from schoolconnect.observability import get_tracer
from schoolconnect.storage.repo import SchoolRepository

logger = logging.getLogger(__name__)


class AnnouncementService:
    def __init__(
        self,
        repo: SchoolRepository,
        email: EmailClient,
        *,
        app_url: str,
        batch_size: int = 50,
        batch_pause_seconds: float = 1.0,
    ) -> None:
        self.repo = repo
        self.email = email
        self.app_url = app_url
        self.batch_size = max(batch_size, 1)
        self.batch_pause_seconds = batch_pause_seconds

    # ---- queries ----
    async def list_for(self, user: User, authored: bool = False) -> list[dict[str, Any]]:
        if authored and user.role == UserRole.teacher:
            return [a.to_wire() for a in await self.repo.list_announcements_by_author(user.id)]

        audiences = ["all", audience_for_role(user.role)]
        announcements = await self.repo.list_published_announcements(audiences, utcnow())
        receipts = await self.repo.list_receipts_for_user(user.id, [a.id for a in announcements])
        read_at = {r.announcement: r.read_at for r in receipts}

        out = []
        for announcement in announcements:
            item = announcement.to_wire()
            when = read_at.get(announcement.id)
            item["isRead"] = when is not None
            item["readAt"] = when.isoformat() if when else None
            out.append(item)
        return out

    async def detail(self, announcement_id: str, user: User) -> dict[str, Any]:
        announcement = await self._get(announcement_id)
        is_author = announcement.author == user.id
        if not is_author and not announcement.targets_role(user.role):
            raise Forbidden("Access denied")

        data = announcement.to_wire()
        if is_author:
            recipients = await self.repo.list_recipients(announcement.id)
            data["analytics"] = AnnouncementAnalytics.from_recipients(recipients).to_wire()
        else:
            receipt = await self.repo.get_recipient(announcement.id, user.id)
            data["isRead"] = bool(receipt and receipt.is_read)
            data["readAt"] = receipt.read_at.isoformat() if receipt and receipt.read_at else None
        return data

    # ---- authoring ----
    async def create(self, req: AnnouncementCreate, author: User) -> tuple[Announcement, bool]:
        """Store the announcement. Returns (announcement, needs_fan_out)."""
        if author.role != UserRole.teacher:
            raise Forbidden("Only teachers can create announcements")

        announcement = Announcement(author=author.id, **req.model_dump())
        if announcement.status == AnnouncementStatus.published:
            announcement.published_at = utcnow()
        await self.repo.create_announcement(announcement)
        logger.info("Announcement %s created by %s (%s)", announcement.id, author.id, announcement.status)
        return announcement, announcement.status == AnnouncementStatus.published

    async def _get(self, announcement_id: str) -> Announcement:
        announcement = await self.repo.get_announcement(announcement_id)
        if announcement is None:
            raise NotFound("Announcement not found")
        return announcement

    async def _get_owned(self, announcement_id: str, user: User, action: str) -> Announcement:
        if user.role != UserRole.teacher:
            raise Forbidden(f"Only teachers can {action} announcements")
        announcement = await self._get(announcement_id)
        if announcement.author != user.id:
            raise Forbidden(f"You can only {action} your own announcements")
        return announcement

    async def update(self, announcement_id: str, req: AnnouncementUpdate, user: User) -> tuple[Announcement, bool]:
        """Apply a partial update. Returns (announcement, needs_fan_out)."""
        announcement = await self._get_owned(announcement_id, user, "update")
        patch = req.model_dump(exclude_unset=True)
        merged = announcement.model_dump() | {k: v for k, v in patch.items() if v is not None or k == "scheduled_for"}
        merged["updated_at"] = utcnow()
        try:
            updated = Announcement.model_validate(merged)
        except ValidationError as e:
            raise ValidationFailed.from_pydantic(e) from e
        if updated.status == AnnouncementStatus.published and updated.published_at is None:
            updated.published_at = updated.updated_at
        await self.repo.save_announcement(updated)
        logger.info("Announcement %s updated by %s", updated.id, user.id)
        return updated, patch.get("status") == AnnouncementStatus.published and not updated.email_sent

    async def delete(self, announcement_id: str, user: User) -> None:
        announcement = await self._get_owned(announcement_id, user, "delete")
        await self.repo.delete_announcement(announcement.id)
        logger.info("Announcement %s deleted by %s", announcement.id, user.id)

    # ---- read receipts ----
    async def mark_read(self, announcement_id: str, user: User):
        await self._get(announcement_id)
        return await self.repo.mark_read(announcement_id, user.id, utcnow())

    async def mark_unread(self, announcement_id: str, user: User) -> None:
        await self._get(announcement_id)
        await self.repo.mark_unread(announcement_id, user.id)

    # ---- fan-out ----
    async def publish(self, announcement: Announcement, author: Optional[User] = None) -> Announcement:
        """Record recipients and send emails. Never raises."""
        with get_tracer().start_as_current_span("announcement.fan_out") as span:
            span.set_attribute("announcement.id", announcement.id)
            try:
                recipients = await self.repo.list_users(roles_for_audience(list(announcement.audience)))
                inserted = await self.repo.add_recipients(announcement.id, [u.id for u in recipients])
                span.set_attribute("announcement.recipients", len(recipients))
                logger.info(
                    "Announcement %s: %d recipients (%d new)", announcement.id, len(recipients), inserted
                )

                if announcement.send_email:
                    await self.send_emails(announcement, recipients, author)
                    announcement.email_sent = True
                    announcement.email_sent_at = utcnow()
                    await self.repo.mark_announcement_emailed(announcement.id, announcement.email_sent_at)
            except Exception:
                logger.exception("Error creating recipients and sending emails for %s", announcement.id)
        return announcement

    async def send_emails(self, announcement: Announcement, recipients: list[User], author: Optional[User]) -> int:
        """Send in batches with a pause between them. Returns the number delivered to the provider."""
        sent = 0
        for start in range(0, len(recipients), self.batch_size):
            batch = recipients[start : start + self.batch_size]
            results = await asyncio.gather(*(self._send_one(announcement, r, author) for r in batch))
            sent += sum(1 for ok in results if ok)
            if start + self.batch_size < len(recipients) and self.batch_pause_seconds > 0:
                await asyncio.sleep(self.batch_pause_seconds)
        logger.info("Announcement %s: %d/%d emails sent", announcement.id, sent, len(recipients))
        return sent

    async def _send_one(self, announcement: Announcement, recipient: User, author: Optional[User]) -> bool:
        try:
            message = EmailMessage(
                to=recipient.email,
                subject=announcement_subject(announcement),
                html=announcement_html(announcement, recipient, author, self.app_url),
            )
            await self.email.send(message)
            await self.repo.mark_email_sent(announcement.id, recipient.id, utcnow())
            return True
        except Exception as e:
            logger.error("Failed to send email to %s: %s", recipient.email, e)
            return False
