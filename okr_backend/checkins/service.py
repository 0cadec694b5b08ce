"""Check-in service layer — submission and per-user statistics."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from okr_backend.checkins.lateness import check_in_progress, is_late, summarize_checkins
from okr_backend.checkins.schemas import CheckInCreate, CheckInStats
from okr_backend.common.exceptions import NotFoundException
from okr_backend.okr.models import CheckIn, KeyResult, Objective
from okr_backend.org.models import User
from okr_backend.org.schemas import Actor
from okr_backend.repository import Repository

logger = logging.getLogger(__name__)


class CheckInService:
    """Async check-in operations."""

    @staticmethod
    async def submit_checkin(
        db: AsyncSession,
        data: CheckInCreate,
        actor: Actor,
        repository: Repository,
    ) -> tuple[CheckIn, KeyResult, Objective]:
        """Record a check-in and move the key result's current value.

        Lateness is evaluated against the previous check-in before the new
        row is written. The key result's rollup columns are left to the
        aggregator.
        """
        key_result = await db.get(KeyResult, data.key_result_id)
        if key_result is None:
            raise NotFoundException("KeyResult", data.key_result_id)
        objective = await db.get(Objective, key_result.objective_id)
        if objective is None:
            raise NotFoundException("Objective", key_result.objective_id)

        submitted_at = datetime.now(timezone.utc)
        late = await is_late(key_result.id, submitted_at, repository)

        checkin = CheckIn(
            key_result_id=key_result.id,
            user_id=actor.id,
            current_value=data.current_value,
            progress=check_in_progress(key_result, data.current_value),
            confidence=data.confidence,
            status_comment=data.status_comment,
            blockers=data.blockers,
            is_late=late,
            submitted_at=submitted_at,
        )
        db.add(checkin)

        key_result.current_value = data.current_value
        key_result.last_checkin_at = submitted_at
        await db.flush()

        if late:
            logger.info("Late check-in on key result %s by %s", key_result.id, actor.id)
        return checkin, key_result, objective

    @staticmethod
    async def list_checkins(
        db: AsyncSession,
        *,
        key_result_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> list[CheckIn]:
        """Check-ins newest first, optionally narrowed to a key result or user."""
        query = select(CheckIn).order_by(CheckIn.submitted_at.desc())
        if key_result_id is not None:
            query = query.where(CheckIn.key_result_id == key_result_id)
        if user_id is not None:
            query = query.where(CheckIn.user_id == user_id)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_user_stats(
        db: AsyncSession,
        user_id: uuid.UUID,
        repository: Repository,
    ) -> CheckInStats:
        if await db.get(User, user_id) is None:
            raise NotFoundException("User", user_id)
        checkins = await repository.find_checkins_by_user(user_id)
        return summarize_checkins(checkins)
