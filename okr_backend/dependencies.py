"""Shared FastAPI dependencies."""

import uuid
from typing import Callable

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from okr_backend.common.constants import UserRole
from okr_backend.common.exceptions import ForbiddenException, NotFoundException
from okr_backend.database import get_db
from okr_backend.org.models import User
from okr_backend.org.schemas import Actor


async def get_actor(
    x_actor_id: uuid.UUID = Header(..., description="Id of the user performing the request"),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Resolve the acting user from the ``X-Actor-Id`` header."""
    result = await db.execute(
        select(User)
        .options(selectinload(User.teams))
        .where(User.id == x_actor_id, User.is_active.is_(True))
    )
    user = result.scalars().first()
    if user is None:
        raise NotFoundException("User", x_actor_id)

    return Actor(
        id=user.id,
        name=user.name,
        role=user.role,
        team_id=user.teams[0].id if user.teams else None,
    )


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that only admits actors with one of *allowed_roles*."""

    async def _check(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise ForbiddenException(
                detail=f"Role '{actor.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return actor

    return _check
