"""Notification endpoints — list, mark read, unread count, delete."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from okr_backend.common.constants import NotificationActionType
from okr_backend.common.pagination import PaginationParams
from okr_backend.database import get_db
from okr_backend.dependencies import get_actor
from okr_backend.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
)
from okr_backend.notifications.service import NotificationService
from okr_backend.org.schemas import Actor

router = APIRouter(prefix="", tags=["notifications"])


# ── GET / — list the actor's notifications ──────────────────────────

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Filter by read status"),
    type: Optional[NotificationActionType] = Query(
        default=None, alias="type", description="Filter by notification type"
    ),
    pagination: PaginationParams = Depends(),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """List notifications for the acting user (paginated)."""
    return await NotificationService.get_notifications(
        db,
        actor.id,
        pagination,
        is_read=is_read,
        notification_type=type,
    )


# ── GET /unread-count — badge count ─────────────────────────────────
# Registered before /{notification_id}/read so "unread-count" is never
# parsed as a UUID.

@router.get("/unread-count")
async def unread_count(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Return the number of unread notifications (for header badge)."""
    count = await NotificationService.get_unread_count(db, actor.id)
    return {"data": {"count": count}}


# ── PUT /read-all — bulk mark all as read ───────────────────────────

@router.put("/read-all")
async def mark_all_read(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Mark all unread notifications as read for the acting user."""
    count = await NotificationService.mark_all_read(db, actor.id)
    return {"message": "All notifications marked as read", "data": {"count": count}}


# ── DELETE /read — clear everything already read ──────────────────
# Registered before /{notification_id} so "read" is never parsed as a UUID.

@router.delete("/read")
async def clear_read(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delete the acting user's read notifications."""
    count = await NotificationService.clear_read(db, actor.id)
    return {"message": "Read notifications cleared", "data": {"count": count}}


# ── PUT /{notification_id}/read — mark single as read ───────────────

@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Mark a single notification as read."""
    notification = await NotificationService.mark_read(db, notification_id, actor.id)
    return {
        "message": "Notification marked as read",
        "data": NotificationResponse.model_validate(notification),
    }


# ── DELETE /{notification_id} — delete one ──────────────────────────

@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService.delete_notification(db, notification_id, actor.id)
    return {"message": "Notification deleted"}
