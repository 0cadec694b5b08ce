"""Persistence boundary used by the rollup and notification code.

``Repository`` is the protocol the aggregator, the lateness evaluator and the
recipient resolver depend on. ``SqlAlchemyRepository`` implements it over the
request's ``AsyncSession``; every driver failure surfaces as
``RepositoryError`` after the session has been rolled back to its last
commit, so a failed rollup or fan-out never leaves half-written rows behind.

Each rollup write is committed on its own. Callers commit their own work
before handing the session over, so a rollback only ever discards the
failing operation.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional, Protocol, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from okr_backend.common.constants import UserRole
from okr_backend.common.exceptions import RepositoryError
from okr_backend.okr.models import CheckIn, KeyResult, Objective
from okr_backend.okr.schemas import Rollup
from okr_backend.org.models import Team, User, user_departments, user_teams


class Repository(Protocol):
    """Read/write operations the OKR core needs from the record store."""

    async def get_objective(self, objective_id: uuid.UUID) -> Optional[Objective]: ...

    async def get_team(self, team_id: uuid.UUID) -> Optional[Team]: ...

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]: ...

    async def find_key_results_by_objective(
        self, objective_id: uuid.UUID,
    ) -> Sequence[KeyResult]: ...

    async def find_latest_checkin(self, key_result_id: uuid.UUID) -> Optional[CheckIn]: ...

    async def find_checkins_by_user(self, user_id: uuid.UUID) -> Sequence[CheckIn]: ...

    async def find_active_users_by_role(self, role: UserRole) -> Sequence[User]: ...

    async def find_active_users_by_ids(
        self, user_ids: Iterable[uuid.UUID],
    ) -> Sequence[User]: ...

    async def find_department_head(self, department_id: uuid.UUID) -> Optional[User]: ...

    async def find_teams_by_department(self, department_id: uuid.UUID) -> Sequence[Team]: ...

    async def find_users_by_team(self, team_id: uuid.UUID) -> Sequence[User]: ...

    async def save_objective_rollup(self, objective_id: uuid.UUID, rollup: Rollup) -> None: ...

    async def save_key_result_rollup(self, key_result_id: uuid.UUID, rollup: Rollup) -> None: ...


class SqlAlchemyRepository:
    """``Repository`` backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise RepositoryError(operation, exc) from exc

    # ── Single-record lookups ───────────────────────────────────────

    async def get_objective(self, objective_id: uuid.UUID) -> Optional[Objective]:
        async with self._guard("get_objective"):
            return await self.db.get(Objective, objective_id)

    async def get_team(self, team_id: uuid.UUID) -> Optional[Team]:
        async with self._guard("get_team"):
            return await self.db.get(Team, team_id)

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        """Return the user with team/department memberships loaded in join order."""
        async with self._guard("get_user"):
            result = await self.db.execute(
                select(User)
                .options(selectinload(User.teams), selectinload(User.departments))
                .where(User.id == user_id)
            )
            return result.scalars().first()

    # ── OKR queries ─────────────────────────────────────────────────

    async def find_key_results_by_objective(
        self, objective_id: uuid.UUID,
    ) -> Sequence[KeyResult]:
        async with self._guard("find_key_results_by_objective"):
            result = await self.db.execute(
                select(KeyResult)
                .where(KeyResult.objective_id == objective_id)
                .order_by(KeyResult.created_at)
                .execution_options(populate_existing=True)
            )
            return result.scalars().all()

    async def find_latest_checkin(self, key_result_id: uuid.UUID) -> Optional[CheckIn]:
        async with self._guard("find_latest_checkin"):
            result = await self.db.execute(
                select(CheckIn)
                .where(CheckIn.key_result_id == key_result_id)
                .order_by(CheckIn.submitted_at.desc())
                .limit(1)
            )
            return result.scalars().first()

    async def find_checkins_by_user(self, user_id: uuid.UUID) -> Sequence[CheckIn]:
        async with self._guard("find_checkins_by_user"):
            result = await self.db.execute(
                select(CheckIn)
                .where(CheckIn.user_id == user_id)
                .order_by(CheckIn.submitted_at.desc())
            )
            return result.scalars().all()

    # ── Org hierarchy queries ───────────────────────────────────────

    async def find_active_users_by_role(self, role: UserRole) -> Sequence[User]:
        async with self._guard("find_active_users_by_role"):
            result = await self.db.execute(
                select(User)
                .where(User.role == role, User.is_active.is_(True))
                .order_by(User.created_at)
            )
            return result.scalars().all()

    async def find_active_users_by_ids(
        self, user_ids: Iterable[uuid.UUID],
    ) -> Sequence[User]:
        ids = list(user_ids)
        if not ids:
            return []
        async with self._guard("find_active_users_by_ids"):
            result = await self.db.execute(
                select(User).where(User.id.in_(ids), User.is_active.is_(True))
            )
            return result.scalars().all()

    async def find_department_head(self, department_id: uuid.UUID) -> Optional[User]:
        """First active manager (by creation) who is a member of the department."""
        async with self._guard("find_department_head"):
            result = await self.db.execute(
                select(User)
                .join(user_departments, user_departments.c.user_id == User.id)
                .where(
                    user_departments.c.department_id == department_id,
                    User.role == UserRole.manager,
                    User.is_active.is_(True),
                )
                .order_by(User.created_at)
                .limit(1)
            )
            return result.scalars().first()

    async def find_teams_by_department(self, department_id: uuid.UUID) -> Sequence[Team]:
        async with self._guard("find_teams_by_department"):
            result = await self.db.execute(
                select(Team).where(
                    Team.department_id == department_id,
                    Team.is_active.is_(True),
                )
            )
            return result.scalars().all()

    async def find_users_by_team(self, team_id: uuid.UUID) -> Sequence[User]:
        async with self._guard("find_users_by_team"):
            result = await self.db.execute(
                select(User)
                .join(user_teams, user_teams.c.user_id == User.id)
                .where(user_teams.c.team_id == team_id, User.is_active.is_(True))
            )
            return result.scalars().all()

    # ── Rollup write-back ───────────────────────────────────────────

    async def save_objective_rollup(self, objective_id: uuid.UUID, rollup: Rollup) -> None:
        async with self._guard("save_objective_rollup"):
            await self.db.execute(
                update(Objective)
                .where(Objective.id == objective_id)
                .values(progress=rollup.progress, confidence=rollup.confidence)
            )
            await self.db.commit()

    async def save_key_result_rollup(self, key_result_id: uuid.UUID, rollup: Rollup) -> None:
        async with self._guard("save_key_result_rollup"):
            await self.db.execute(
                update(KeyResult)
                .where(KeyResult.id == key_result_id)
                .values(progress=rollup.progress, confidence=rollup.confidence)
            )
            await self.db.commit()
