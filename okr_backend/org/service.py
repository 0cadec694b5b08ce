"""Org service layer — team membership."""

from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from okr_backend.common.exceptions import ConflictError, NotFoundException
from okr_backend.org.models import Team, User, user_teams


async def _load_team_and_user(
    db: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID,
) -> Team:
    team = await db.get(Team, team_id)
    if team is None:
        raise NotFoundException("Team", team_id)
    if await db.get(User, user_id) is None:
        raise NotFoundException("User", user_id)
    return team


async def _is_member(db: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    existing = await db.execute(
        select(user_teams.c.user_id).where(
            user_teams.c.team_id == team_id,
            user_teams.c.user_id == user_id,
        )
    )
    return existing.first() is not None


async def _recount_members(db: AsyncSession, team: Team) -> None:
    count = await db.execute(
        select(func.count())
        .select_from(user_teams)
        .where(user_teams.c.team_id == team.id)
    )
    team.member_count = count.scalar_one()


class TeamService:
    """Async team operations."""

    @staticmethod
    async def add_member(
        db: AsyncSession,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Team:
        """Add *user_id* to the team and refresh its ``member_count``."""
        team = await _load_team_and_user(db, team_id, user_id)
        if await _is_member(db, team_id, user_id):
            raise ConflictError("user_id", user_id)

        await db.execute(user_teams.insert().values(team_id=team_id, user_id=user_id))
        await _recount_members(db, team)
        await db.flush()
        return team

    @staticmethod
    async def remove_member(
        db: AsyncSession,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Team:
        """Remove *user_id* from the team and refresh its ``member_count``."""
        team = await _load_team_and_user(db, team_id, user_id)
        if not await _is_member(db, team_id, user_id):
            raise NotFoundException("Team membership", user_id)

        await db.execute(
            user_teams.delete().where(
                user_teams.c.team_id == team_id,
                user_teams.c.user_id == user_id,
            )
        )
        await _recount_members(db, team)
        await db.flush()
        return team
