from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, status

from schoolconnect.auth.dependencies import get_current_user
from schoolconnect.models import AnnouncementCreate, AnnouncementUpdate, User
from schoolconnect.services.announcements import AnnouncementService
from schoolconnect.wiring import get_announcement_service

router = APIRouter(prefix="/announcements", tags=["announcements"])


@router.get("")
async def list_announcements(
    author: bool = False,
    user: User = Depends(get_current_user),
    announcements: AnnouncementService = Depends(get_announcement_service),
) -> dict:
    return {"announcements": await announcements.list_for(user, authored=author)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_announcement(
    req: AnnouncementCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    announcements: AnnouncementService = Depends(get_announcement_service),
) -> dict:
    announcement, fan_out = await announcements.create(req, user)
    if fan_out:
        background_tasks.add_task(announcements.publish, announcement, user)
    return {"message": "Announcement created successfully", "announcement": announcement.to_wire()}


@router.get("/{announcement_id}")
async def get_announcement(
    announcement_id: str,
    user: User = Depends(get_current_user),
    announcements: AnnouncementService = Depends(get_announcement_service),
) -> dict:
    return {"announcement": await announcements.detail(announcement_id, user)}


@router.patch("/{announcement_id}")
async def update_announcement(
    announcement_id: str,
    req: AnnouncementUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    announcements: AnnouncementService = Depends(get_announcement_service),
) -> dict:
    announcement, fan_out = await announcements.update(announcement_id, req, user)
    if fan_out:
        background_tasks.add_task(announcements.publish, announcement, user)
    return {"message": "Announcement updated successfully", "announcement": announcement.to_wire()}


@router.delete("/{announcement_id}")
async def delete_announcement(
    announcement_id: str,
    user: User = Depends(get_current_user),
    announcements: AnnouncementService = Depends(get_announcement_service),
) -> dict:
    await announcements.delete(announcement_id, user)
    return {"message": "Announcement deleted successfully"}


@router.patch("/{announcement_id}/read")
async def mark_read(
    announcement_id: str,
    user: User = Depends(get_current_user),
    announcements: AnnouncementService = Depends(get_announcement_service),
) -> dict:
    receipt = await announcements.mark_read(announcement_id, user)
    return {"message": "Announcement marked as read", "readAt": receipt.read_at.isoformat()}


@router.delete("/{announcement_id}/read")
async def mark_unread(
    announcement_id: str,
    user: User = Depends(get_current_user),
    announcements: AnnouncementService = Depends(get_announcement_service),
) -> dict:
    await announcements.mark_unread(announcement_id, user)
    return {"message": "Announcement marked as unread"}
