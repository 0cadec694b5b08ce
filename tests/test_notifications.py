"""Notification module test suite — inbox operations, the database
dispatcher, and the OKR fan-out helpers.

Uses the shared conftest.py pattern with in-memory SQLite.
"""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from okr_backend.common.constants import (
    BADGE_DEFINITIONS,
    BadgeType,
    NotificationActionType,
    NotificationPriority,
    ObjectiveType,
    RelatedModel,
    UserRole,
)
from okr_backend.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    RepositoryError,
)
from okr_backend.common.pagination import PaginationParams
from okr_backend.notifications.models import Notification
from okr_backend.notifications.schemas import NotificationCreate
from okr_backend.notifications.service import (
    DatabaseDispatcher,
    NotificationService,
    notify_badge_earned,
    notify_checkin_submitted,
    notify_deadline_approaching,
    notify_okr_event,
    notify_team_assignment,
)
from okr_backend.org.models import User
from okr_backend.org.schemas import Actor
from okr_backend.repository import SqlAlchemyRepository
from tests.conftest import TestSessionFactory, _make_user


# ── Helpers ─────────────────────────────────────────────────────────


async def _seed_user(db: AsyncSession, role: UserRole = UserRole.member, name: str = "User") -> User:
    user = User(**_make_user(role=role, name=name))
    db.add(user)
    await db.flush()
    return user


async def _create_notification(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    type: NotificationActionType = NotificationActionType.okr_updated,
    title: str = "OKR Updated",
    message: str = 'Ada updated "Ship v2"',
) -> Notification:
    return await NotificationService.create_notification(
        db,
        user_id=user_id,
        type=type,
        title=title,
        message=message,
    )


class RecordingDispatcher:
    """Collects payloads instead of storing them."""

    def __init__(self, fail_after: int | None = None) -> None:
        self.sent: list[NotificationCreate] = []
        self.fail_after = fail_after

    async def notify(self, payload: NotificationCreate):
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise RepositoryError("notify")
        self.sent.append(payload)
        return payload


def _actor(name: str = "Ada") -> SimpleNamespace:
    return SimpleNamespace(id=uuid.uuid4(), name=name)


def _pagination(page: int = 1, page_size: int = 50) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


# ═════════════════════════════════════════════════════════════════════
# 1. INBOX
# ═════════════════════════════════════════════════════════════════════


class TestNotificationInbox:
    """Create, list, mark read."""

    async def test_create_defaults(self, db: AsyncSession):
        user = await _seed_user(db)
        notification = await _create_notification(db, user.id)

        assert notification.id is not None
        assert notification.is_read is False
        assert notification.read_at is None
        assert notification.priority == NotificationPriority.medium

    async def test_list_paginated_with_unread_count(self, db: AsyncSession):
        user = await _seed_user(db)
        for _ in range(3):
            await _create_notification(db, user.id)
        first = await _create_notification(db, user.id, type=NotificationActionType.badge_earned)
        await NotificationService.mark_read(db, first.id, user.id)

        page = await NotificationService.get_notifications(db, user.id, _pagination(page_size=2))
        assert len(page.data) == 2
        assert page.meta.total == 4
        assert page.meta.total_pages == 2
        assert page.meta.has_next is True
        assert page.meta.unread == 3

    async def test_filter_by_read_state_and_type(self, db: AsyncSession):
        user = await _seed_user(db)
        await _create_notification(db, user.id)
        badge = await _create_notification(db, user.id, type=NotificationActionType.badge_earned)
        await NotificationService.mark_read(db, badge.id, user.id)

        unread = await NotificationService.get_notifications(db, user.id, _pagination(), is_read=False)
        badges = await NotificationService.get_notifications(
            db, user.id, _pagination(), notification_type=NotificationActionType.badge_earned,
        )
        assert [n.type for n in unread.data] == [NotificationActionType.okr_updated]
        assert [n.id for n in badges.data] == [badge.id]

    async def test_only_own_notifications_listed(self, db: AsyncSession):
        alice = await _seed_user(db, name="Alice")
        bob = await _seed_user(db, name="Bob")
        await _create_notification(db, alice.id)

        page = await NotificationService.get_notifications(db, bob.id, _pagination())
        assert page.data == []
        assert page.meta.unread == 0

    async def test_mark_read_sets_timestamp(self, db: AsyncSession):
        user = await _seed_user(db)
        notification = await _create_notification(db, user.id)

        marked = await NotificationService.mark_read(db, notification.id, user.id)
        assert marked.is_read is True
        assert marked.read_at is not None

    async def test_mark_read_other_user_forbidden(self, db: AsyncSession):
        alice = await _seed_user(db, name="Alice")
        bob = await _seed_user(db, name="Bob")
        notification = await _create_notification(db, alice.id)

        with pytest.raises(ForbiddenException):
            await NotificationService.mark_read(db, notification.id, bob.id)

    async def test_mark_read_missing(self, db: AsyncSession):
        user = await _seed_user(db)
        with pytest.raises(NotFoundException):
            await NotificationService.mark_read(db, uuid.uuid4(), user.id)

    async def test_mark_all_read(self, db: AsyncSession):
        user = await _seed_user(db)
        for _ in range(3):
            await _create_notification(db, user.id)

        count = await NotificationService.mark_all_read(db, user.id)
        assert count == 3
        assert await NotificationService.get_unread_count(db, user.id) == 0


# ═════════════════════════════════════════════════════════════════════
# 2. DISPATCHER
# ═════════════════════════════════════════════════════════════════════


class TestDatabaseDispatcher:

    async def test_persists_payload(self, db: AsyncSession):
        user = await _seed_user(db)
        payload = NotificationCreate(
            user_id=user.id,
            type=NotificationActionType.team_assignment,
            title="Team Assignment",
            message='You have been added to team "Platform"',
            related_model=RelatedModel.team,
            action_url="/teams",
            priority=NotificationPriority.high,
        )

        stored = await DatabaseDispatcher(db).notify(payload)

        assert stored.user_id == user.id
        assert stored.related_model == RelatedModel.team
        assert stored.priority == NotificationPriority.high

    async def test_driver_error_becomes_repository_error(self):
        session = AsyncMock()
        session.add = lambda obj: None
        session.flush.side_effect = SQLAlchemyError("disk full")
        payload = NotificationCreate(
            user_id=uuid.uuid4(),
            type=NotificationActionType.okr_updated,
            title="t",
            message="m",
        )

        with pytest.raises(RepositoryError):
            await DatabaseDispatcher(session).notify(payload)
        session.rollback.assert_awaited_once()


# ═════════════════════════════════════════════════════════════════════
# 3. FAN-OUT HELPERS
# ═════════════════════════════════════════════════════════════════════


class TestOkrFanOut:
    """Resolve → render → link → dispatch."""

    async def test_company_created_notifies_managers(self, db: AsyncSession):
        admin = await _seed_user(db, UserRole.admin, "Ada")
        manager = await _seed_user(db, UserRole.manager, "Max")
        objective = SimpleNamespace(
            id=uuid.uuid4(), title="Win", type=ObjectiveType.company, department_id=None, team_id=None,
        )
        dispatcher = RecordingDispatcher()

        sent = await notify_okr_event(
            SqlAlchemyRepository(db), dispatcher, objective, NotificationActionType.okr_created, admin,
        )

        assert sent == 1
        payload = dispatcher.sent[0]
        assert payload.user_id == manager.id
        assert payload.message == 'Ada created "Win"'
        assert payload.priority == NotificationPriority.high
        assert payload.related_id == objective.id
        assert payload.related_model == RelatedModel.objective
        assert payload.action_url == f"/okr/{objective.id}"

    async def test_deleted_objective_links_to_list(self, db: AsyncSession):
        admin = await _seed_user(db, UserRole.admin, "Ada")
        await _seed_user(db, UserRole.manager, "Max")
        objective = SimpleNamespace(
            id=uuid.uuid4(), title="Win", type=ObjectiveType.company, department_id=None, team_id=None,
        )
        dispatcher = RecordingDispatcher()

        await notify_okr_event(
            SqlAlchemyRepository(db), dispatcher, objective, NotificationActionType.okr_deleted, admin,
        )

        payload = dispatcher.sent[0]
        assert payload.related_id is None
        assert payload.action_url == "/okrs"

    async def test_dispatch_failure_keeps_partial_count(self, db: AsyncSession):
        admin = await _seed_user(db, UserRole.admin, "Ada")
        await _seed_user(db, UserRole.manager, "Max")
        await _seed_user(db, UserRole.manager, "Mia")
        objective = SimpleNamespace(
            id=uuid.uuid4(), title="Win", type=ObjectiveType.company, department_id=None, team_id=None,
        )

        sent = await notify_okr_event(
            SqlAlchemyRepository(db),
            RecordingDispatcher(fail_after=1),
            objective,
            NotificationActionType.okr_updated,
            admin,
        )
        assert sent == 1

    async def test_stored_notifications_survive_later_failure(self, db: AsyncSession):
        admin = await _seed_user(db, UserRole.admin, "Ada")
        max_ = await _seed_user(db, UserRole.manager, "Max")
        mia = await _seed_user(db, UserRole.manager, "Mia")
        await db.commit()
        managers = {max_.id, mia.id}
        actor = Actor(id=admin.id, name="Ada", role=UserRole.admin)
        objective = SimpleNamespace(
            id=uuid.uuid4(), title="Win", type=ObjectiveType.company, department_id=None, team_id=None,
        )

        create = NotificationService.create_notification
        calls = 0

        async def _second_write_fails(session, **fields):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise OperationalError("INSERT", {}, Exception("disk full"))
            return await create(session, **fields)

        with patch.object(NotificationService, "create_notification", _second_write_fails):
            sent = await notify_okr_event(
                SqlAlchemyRepository(db),
                DatabaseDispatcher(db),
                objective,
                NotificationActionType.okr_created,
                actor,
            )

        assert sent == 1
        async with TestSessionFactory() as fresh:
            stored = (await fresh.execute(select(Notification))).scalars().all()
        assert len(stored) == 1
        assert stored[0].user_id in managers

    async def test_checkin_links_to_objective(self):
        repository = AsyncMock()
        repository.get_user.return_value = None
        owner = uuid.uuid4()
        key_result = SimpleNamespace(id=uuid.uuid4(), owner_id=owner, title="NPS 60")
        objective = SimpleNamespace(id=uuid.uuid4(), aligned_to_id=None)
        dispatcher = RecordingDispatcher()

        sent = await notify_checkin_submitted(repository, dispatcher, key_result, objective, _actor("Cy"))

        assert sent == 1
        payload = dispatcher.sent[0]
        assert payload.user_id == owner
        assert payload.type == NotificationActionType.checkin_submitted
        assert payload.related_model == RelatedModel.checkin
        assert payload.related_id == objective.id
        assert payload.action_url == f"/okr/{objective.id}"
        assert payload.message == 'Cy submitted a check-in for "NPS 60"'


class TestSingleRecipientTriggers:

    async def test_team_assignment(self, db: AsyncSession):
        user = await _seed_user(db)
        team = SimpleNamespace(id=uuid.uuid4(), name="Platform")

        assert await notify_team_assignment(DatabaseDispatcher(db), user.id, team, _actor()) is True

        stored = (await db.execute(select(Notification))).scalars().one()
        assert stored.type == NotificationActionType.team_assignment
        assert stored.related_id == team.id
        assert stored.action_url == "/teams"

    async def test_badge_earned(self):
        dispatcher = RecordingDispatcher()
        badge_id = uuid.uuid4()

        assert await notify_badge_earned(dispatcher, uuid.uuid4(), BadgeType.achiever_100, badge_id) is True
        payload = dispatcher.sent[0]
        assert payload.message == 'Congratulations! You earned the "Goal Achiever" badge'
        assert payload.related_id == badge_id
        assert payload.related_model == RelatedModel.badge
        assert payload.action_url == "/profile"

    @pytest.mark.parametrize("badge", list(BadgeType))
    async def test_every_badge_has_a_name(self, badge):
        dispatcher = RecordingDispatcher()

        assert await notify_badge_earned(dispatcher, uuid.uuid4(), badge.value) is True
        assert BADGE_DEFINITIONS[badge]["title"] in dispatcher.sent[0].message

    async def test_unknown_badge_rejected(self):
        with pytest.raises(ValueError):
            await notify_badge_earned(RecordingDispatcher(), uuid.uuid4(), "gold-star")

    async def test_deadline_approaching(self):
        dispatcher = RecordingDispatcher()

        assert await notify_deadline_approaching(dispatcher, uuid.uuid4(), 3) is True
        assert dispatcher.sent[0].priority == NotificationPriority.urgent
        assert dispatcher.sent[0].action_url == "/"

    async def test_failure_returns_false(self, db: AsyncSession):
        assert await notify_deadline_approaching(RecordingDispatcher(fail_after=0), uuid.uuid4(), 3) is False
        count = (await db.execute(select(func.count()).select_from(Notification))).scalar_one()
        assert count == 0
