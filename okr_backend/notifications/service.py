"""Notification service — inbox operations, the dispatcher, and OKR fan-out helpers."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from okr_backend.common.constants import (
    BADGE_DEFINITIONS,
    BadgeType,
    NotificationActionType,
    NotificationPriority,
    RelatedModel,
)
from okr_backend.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    RepositoryError,
)
from okr_backend.common.pagination import PaginationParams
from okr_backend.notifications.messages import (
    DELETED_OBJECTIVE_URL,
    action_url,
    render_message,
)
from okr_backend.notifications.models import Notification
from okr_backend.notifications.recipients import (
    RecipientSet,
    resolve_checkin_recipients,
    resolve_okr_recipients,
)
from okr_backend.notifications.schemas import (
    NotificationCreate,
    NotificationListMeta,
    NotificationListResponse,
    NotificationMessage,
    NotificationResponse,
)
from okr_backend.repository import Repository

logger = logging.getLogger(__name__)


# ── Inbox service ───────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        type: NotificationActionType,
        title: str,
        message: str,
        related_id: Optional[uuid.UUID] = None,
        related_model: Optional[RelatedModel] = None,
        action_url: Optional[str] = None,
        priority: NotificationPriority = NotificationPriority.medium,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=related_id,
            related_model=related_model,
            action_url=action_url,
            priority=priority,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        user_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationActionType] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for a user, newest first."""
        query = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
        )

        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)

        # Total count (with filters applied)
        count_q = query.with_only_columns(func.count()).order_by(None)
        total: int = (await db.execute(count_q)).scalar_one()

        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        # Unread count is always unfiltered (header badge)
        unread = await NotificationService.get_unread_count(db, user_id)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta.build(pagination, total, unread=unread),
        )

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        notification = await db.get(Notification, notification_id)

        if notification is None:
            raise NotFoundException("Notification", notification_id)

        if notification.user_id != user_id:
            raise ForbiddenException("You can only mark your own notifications as read.")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def delete_notification(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> None:
        """Delete one of the user's notifications; someone else's counts as missing."""
        notification = await db.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundException("Notification", notification_id)

        await db.delete(notification)
        await db.flush()

    @staticmethod
    async def clear_read(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Delete every read notification of a user. Returns count deleted."""
        result = await db.execute(
            delete(Notification).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(True),
            )
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for a user."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Dispatcher ──────────────────────────────────────────────────────


class Dispatcher(Protocol):
    """Turns one (recipient, message) payload into a stored notification."""

    async def notify(self, payload: NotificationCreate) -> Notification: ...


class DatabaseDispatcher:
    """Persists notifications in the request's session.

    Every notification is committed as soon as it is written, so a failed
    dispatch rolls back only itself and earlier recipients keep theirs.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def notify(self, payload: NotificationCreate) -> Notification:
        try:
            notification = await NotificationService.create_notification(
                self.db, **payload.model_dump(),
            )
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise RepositoryError("notify", exc) from exc
        return notification


async def _dispatch_all(
    dispatcher: Dispatcher,
    recipients: RecipientSet,
    event: str,
    *,
    type: NotificationActionType,
    rendered: NotificationMessage,
    related_id: Optional[uuid.UUID],
    related_model: RelatedModel,
    url: str,
) -> int:
    """Dispatch one payload per recipient; stops at the first failure."""
    sent = 0
    try:
        for user_id in recipients.user_ids():
            await dispatcher.notify(
                NotificationCreate(
                    user_id=user_id,
                    type=type,
                    title=rendered.title,
                    message=rendered.message,
                    related_id=related_id,
                    related_model=related_model,
                    action_url=url,
                    priority=rendered.priority,
                )
            )
            sent += 1
    except (RepositoryError, SQLAlchemyError):
        logger.exception(
            "Fan-out for %s stopped after %d of %d notification(s)", event, sent, len(recipients),
        )
    return sent


# ── OKR fan-out helpers ─────────────────────────────────────────────
# Called by the routers after the triggering write. They never raise:
# a failed fan-out is logged and the write still succeeds.


async def notify_okr_event(
    repository: Repository,
    dispatcher: Dispatcher,
    objective,
    action: NotificationActionType,
    actor,
) -> int:
    """Notify everyone who should hear that *actor* created/updated/deleted *objective*."""
    recipients = await resolve_okr_recipients(objective, action, actor.id, repository)
    rendered = render_message(
        action,
        actor_name=actor.name,
        title=objective.title,
        objective_type=objective.type,
    )
    deleted = action == NotificationActionType.okr_deleted

    sent = await _dispatch_all(
        dispatcher,
        recipients,
        action.value,
        type=action,
        rendered=rendered,
        related_id=None if deleted else objective.id,
        related_model=RelatedModel.objective,
        url=DELETED_OBJECTIVE_URL if deleted else action_url(RelatedModel.objective, objective.id),
    )

    logger.info(
        "Created %d notification(s) for %s: %s", sent, action.value, objective.title,
    )
    return sent


async def notify_checkin_submitted(
    repository: Repository,
    dispatcher: Dispatcher,
    key_result,
    objective,
    actor,
) -> int:
    """Notify the KR owner, the actor's team lead and the parent objective owner."""
    recipients = await resolve_checkin_recipients(key_result, objective, actor.id, repository)
    rendered = render_message(
        NotificationActionType.checkin_submitted,
        actor_name=actor.name,
        title=key_result.title,
    )

    sent = await _dispatch_all(
        dispatcher,
        recipients,
        NotificationActionType.checkin_submitted.value,
        type=NotificationActionType.checkin_submitted,
        rendered=rendered,
        related_id=objective.id,
        related_model=RelatedModel.checkin,
        url=action_url(RelatedModel.objective, objective.id),
    )

    logger.info("Created %d notification(s) for check-in on %s", sent, key_result.title)
    return sent


async def _notify_one(dispatcher: Dispatcher, payload: NotificationCreate) -> bool:
    try:
        await dispatcher.notify(payload)
    except (RepositoryError, SQLAlchemyError):
        logger.exception("Could not notify user %s (%s)", payload.user_id, payload.type.value)
        return False
    return True


async def notify_team_assignment(
    dispatcher: Dispatcher,
    user_id: uuid.UUID,
    team,
    actor,
) -> bool:
    """Tell *user_id* they were added to *team*."""
    rendered = render_message(
        NotificationActionType.team_assignment,
        actor_name=getattr(actor, "name", None),
        name=team.name,
    )
    return await _notify_one(
        dispatcher,
        NotificationCreate(
            user_id=user_id,
            type=NotificationActionType.team_assignment,
            title=rendered.title,
            message=rendered.message,
            related_id=team.id,
            related_model=RelatedModel.team,
            action_url=action_url(RelatedModel.team, team.id),
            priority=rendered.priority,
        ),
    )


async def notify_badge_earned(
    dispatcher: Dispatcher,
    user_id: uuid.UUID,
    badge: BadgeType,
    badge_id: Optional[uuid.UUID] = None,
) -> bool:
    """Tell *user_id* they earned *badge*; the name comes from the catalogue.

    Raises ValueError for a badge type that is not in the catalogue.
    """
    badge_name = BADGE_DEFINITIONS[BadgeType(badge)]["title"]
    rendered = render_message(NotificationActionType.badge_earned, name=badge_name)
    return await _notify_one(
        dispatcher,
        NotificationCreate(
            user_id=user_id,
            type=NotificationActionType.badge_earned,
            title=rendered.title,
            message=rendered.message,
            related_id=badge_id,
            related_model=RelatedModel.badge,
            action_url=action_url(RelatedModel.badge, badge_id),
            priority=rendered.priority,
        ),
    )


async def notify_deadline_approaching(
    dispatcher: Dispatcher,
    user_id: uuid.UUID,
    days_remaining: int,
) -> bool:
    """End-of-period reminder for one user."""
    rendered = render_message(
        NotificationActionType.deadline_approaching, days_remaining=days_remaining,
    )
    return await _notify_one(
        dispatcher,
        NotificationCreate(
            user_id=user_id,
            type=NotificationActionType.deadline_approaching,
            title=rendered.title,
            message=rendered.message,
            action_url=action_url(None),
            priority=rendered.priority,
        ),
    )
