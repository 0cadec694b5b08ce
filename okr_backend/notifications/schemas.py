"""Notification Pydantic schemas for request / response validation."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from okr_backend.common.constants import (
    NotificationActionType,
    NotificationPriority,
    RelatedModel,
)
from okr_backend.common.pagination import PaginationMeta


# ── Internal (used by the dispatcher, not exposed via API) ──────────

class NotificationMessage(BaseModel):
    """Rendered title/message/priority for one action."""

    model_config = ConfigDict(frozen=True)

    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.medium


class NotificationCreate(BaseModel):
    """Payload handed to a ``Dispatcher`` for one recipient."""

    user_id: uuid.UUID
    type: NotificationActionType
    title: str
    message: str
    related_id: Optional[uuid.UUID] = None
    related_model: Optional[RelatedModel] = None
    action_url: Optional[str] = None
    priority: NotificationPriority = NotificationPriority.medium


# ── Responses ───────────────────────────────────────────────────────

class NotificationResponse(BaseModel):
    """Single notification in API responses."""

    id: uuid.UUID
    type: NotificationActionType
    title: str
    message: str
    related_id: Optional[uuid.UUID] = None
    related_model: Optional[RelatedModel] = None
    action_url: Optional[str] = None
    priority: NotificationPriority
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListMeta(PaginationMeta):
    """Extends standard pagination meta with unread count."""

    unread: int


class NotificationListResponse(BaseModel):
    """Paginated list of notifications with unread count in meta."""

    data: list[NotificationResponse]
    meta: NotificationListMeta
