"""Notification ORM model — one row per recipient per event."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from okr_backend.common.constants import (
    NotificationActionType,
    NotificationPriority,
    RelatedModel,
)
from okr_backend.database import Base, enum_column_type, utcnow


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        sa.Index("ix_notifications_user_read_created", "user_id", "is_read", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[NotificationActionType] = mapped_column(
        enum_column_type(NotificationActionType, "notification_type"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    message: Mapped[str] = mapped_column(sa.Text, nullable=False)
    related_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    related_model: Mapped[Optional[RelatedModel]] = mapped_column(
        enum_column_type(RelatedModel, "related_model"),
    )
    action_url: Mapped[Optional[str]] = mapped_column(sa.String(500))
    priority: Mapped[NotificationPriority] = mapped_column(
        enum_column_type(NotificationPriority, "notification_priority"),
        default=NotificationPriority.medium,
        nullable=False,
    )
    is_read: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )
