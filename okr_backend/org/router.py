"""Team endpoints — membership changes."""


import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from okr_backend.common.constants import UserRole
from okr_backend.database import get_db
from okr_backend.dependencies import require_role
from okr_backend.notifications.service import DatabaseDispatcher, notify_team_assignment
from okr_backend.org.schemas import Actor, TeamMemberAdd, TeamResponse
from okr_backend.org.service import TeamService

router = APIRouter(prefix="", tags=["teams"])


# ── POST /{team_id}/members ─────────────────────────────────────────

@router.post("/{team_id}/members", response_model=TeamResponse)
async def add_team_member(
    team_id: uuid.UUID,
    body: TeamMemberAdd,
    actor: Actor = Depends(require_role(UserRole.admin, UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Add a user to a team and tell them about it."""
    team = await TeamService.add_member(db, team_id, body.user_id)
    await db.commit()

    response = TeamResponse.model_validate(team)
    await notify_team_assignment(DatabaseDispatcher(db), body.user_id, response, actor)
    return response


# ── DELETE /{team_id}/members/{user_id} ─────────────────────────────

@router.delete("/{team_id}/members/{user_id}", response_model=TeamResponse)
async def remove_team_member(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    actor: Actor = Depends(require_role(UserRole.admin, UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Take a user off a team."""
    team = await TeamService.remove_member(db, team_id, user_id)
    await db.commit()
    return TeamResponse.model_validate(team)
