"""OKR service layer — objective and key result CRUD with permission checks.

Services only flush. The routers commit the triggering write before the
rollup and notification fan-out run, so a failure in either of those can
never undo it.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from okr_backend.common.constants import (
    ObjectiveStatus,
    ObjectiveType,
    UserRole,
)
from okr_backend.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from okr_backend.common.pagination import PaginationMeta, PaginationParams
from okr_backend.database import utcnow
from okr_backend.okr.models import CheckIn, KeyResult, Objective
from okr_backend.okr.schemas import (
    KeyResultCreate,
    KeyResultListResponse,
    KeyResultResponse,
    KeyResultUpdate,
    ObjectiveCreate,
    ObjectiveListResponse,
    ObjectiveResponse,
    ObjectiveUpdate,
)
from okr_backend.org.models import Department, Team
from okr_backend.org.schemas import Actor


# ── Permission helpers ──────────────────────────────────────────────

_CREATE_ROLES: dict[ObjectiveType, tuple[UserRole, ...]] = {
    ObjectiveType.company: (UserRole.admin,),
    ObjectiveType.department: (UserRole.admin, UserRole.manager),
    ObjectiveType.team: (UserRole.admin, UserRole.manager),
}


def _is_team_manager(actor: Actor, objective: Objective) -> bool:
    return (
        actor.role == UserRole.manager
        and objective.team_id is not None
        and objective.team_id == actor.team_id
    )


def _can_edit_objective(actor: Actor, objective: Objective) -> bool:
    return actor.is_admin or objective.owner_id == actor.id or _is_team_manager(actor, objective)


def _is_owner_or_admin(actor: Actor, objective: Objective) -> bool:
    return actor.is_admin or objective.owner_id == actor.id


async def _load_objective(db: AsyncSession, objective_id: uuid.UUID) -> Objective:
    objective = await db.get(Objective, objective_id)
    if objective is None:
        raise NotFoundException("Objective", objective_id)
    return objective


# ═════════════════════════════════════════════════════════════════════
# ObjectiveService
# ═════════════════════════════════════════════════════════════════════


class ObjectiveService:
    """Async CRUD operations for objectives."""

    # ── List ────────────────────────────────────────────────────────

    @staticmethod
    async def list_objectives(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        type: Optional[ObjectiveType] = None,
        status: Optional[ObjectiveStatus] = None,
        owner_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        team_id: Optional[uuid.UUID] = None,
        year: Optional[int] = None,
    ) -> ObjectiveListResponse:
        """Return objectives newest first, filtered and paginated."""
        query = select(Objective).order_by(Objective.created_at.desc())

        filters = {
            Objective.type: type,
            Objective.status: status,
            Objective.owner_id: owner_id,
            Objective.department_id: department_id,
            Objective.team_id: team_id,
            Objective.year: year,
        }
        for column, value in filters.items():
            if value is not None:
                query = query.where(column == value)

        count_q = query.with_only_columns(func.count()).order_by(None)
        total: int = (await db.execute(count_q)).scalar_one()

        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        return ObjectiveListResponse(
            data=[ObjectiveResponse.model_validate(o) for o in rows],
            meta=PaginationMeta.build(pagination, total),
        )

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_objective(db: AsyncSession, objective_id: uuid.UUID) -> Objective:
        """Load an objective together with its key results."""
        result = await db.execute(
            select(Objective)
            .options(selectinload(Objective.key_results))
            .where(Objective.id == objective_id)
        )
        objective = result.scalars().first()
        if objective is None:
            raise NotFoundException("Objective", objective_id)
        return objective

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_objective(
        db: AsyncSession,
        data: ObjectiveCreate,
        actor: Actor,
    ) -> Objective:
        """Create an objective owned by ``data.owner_id`` (or the actor)."""
        allowed = _CREATE_ROLES.get(data.type)
        if allowed is not None and actor.role not in allowed:
            raise ForbiddenException(
                f"Role '{actor.role.value}' cannot create {data.type.value} objectives.",
            )

        if data.department_id is not None and await db.get(Department, data.department_id) is None:
            raise NotFoundException("Department", data.department_id)
        if data.team_id is not None and await db.get(Team, data.team_id) is None:
            raise NotFoundException("Team", data.team_id)
        if data.aligned_to_id is not None:
            await _load_objective(db, data.aligned_to_id)

        fields = data.model_dump()
        fields["owner_id"] = data.owner_id or actor.id
        objective = Objective(**fields)
        db.add(objective)
        await db.flush()
        return objective

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_objective(
        db: AsyncSession,
        objective_id: uuid.UUID,
        data: ObjectiveUpdate,
        actor: Actor,
    ) -> Objective:
        """Partial update. Owner, admin, or the manager of the objective's team."""
        objective = await _load_objective(db, objective_id)
        if not _can_edit_objective(actor, objective):
            raise ForbiddenException("Not authorized to update this objective.")

        changes = data.model_dump(exclude_unset=True)
        if changes.get("aligned_to_id") is not None:
            if changes["aligned_to_id"] == objective.id:
                raise ValidationException({"aligned_to_id": ["An objective cannot be aligned to itself."]})
            await _load_objective(db, changes["aligned_to_id"])

        for field, value in changes.items():
            setattr(objective, field, value)
        await db.flush()
        return objective

    # ── Delete ──────────────────────────────────────────────────────

    @staticmethod
    async def delete_objective(
        db: AsyncSession,
        objective_id: uuid.UUID,
        actor: Actor,
    ) -> ObjectiveResponse:
        """Delete an objective and its key results. Owner or admin only.

        Returns a snapshot of the deleted row for notification fan-out.
        """
        objective = await _load_objective(db, objective_id)
        if not _is_owner_or_admin(actor, objective):
            raise ForbiddenException("Not authorized to delete this objective.")

        snapshot = ObjectiveResponse.model_validate(objective)

        key_result_ids = select(KeyResult.id).where(KeyResult.objective_id == objective_id)
        await db.execute(delete(CheckIn).where(CheckIn.key_result_id.in_(key_result_ids)))
        await db.execute(delete(KeyResult).where(KeyResult.objective_id == objective_id))
        await db.execute(
            update(Objective)
            .where(Objective.aligned_to_id == objective_id)
            .values(aligned_to_id=None)
        )
        await db.delete(objective)
        await db.flush()
        return snapshot

    # ── Publish ─────────────────────────────────────────────────────

    @staticmethod
    async def publish_objective(
        db: AsyncSession,
        objective_id: uuid.UUID,
        actor: Actor,
    ) -> Objective:
        """Move an objective to active. Owner or admin, and only once it has key results."""
        objective = await _load_objective(db, objective_id)
        if not _is_owner_or_admin(actor, objective):
            raise ForbiddenException("Not authorized to publish this objective.")

        key_result_count: int = (
            await db.execute(
                select(func.count())
                .select_from(KeyResult)
                .where(KeyResult.objective_id == objective_id)
            )
        ).scalar_one()
        if key_result_count == 0:
            raise ValidationException(
                {"key_results": ["Cannot publish an objective without key results."]}
            )

        objective.status = ObjectiveStatus.active
        objective.published_at = utcnow()
        await db.flush()
        return objective


# ═════════════════════════════════════════════════════════════════════
# KeyResultService
# ═════════════════════════════════════════════════════════════════════


class KeyResultService:
    """Async CRUD operations for key results.

    Rollup columns are not written here; the router runs the aggregator
    once the change is committed.
    """

    @staticmethod
    async def list_key_results(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        objective_id: Optional[uuid.UUID] = None,
        owner_id: Optional[uuid.UUID] = None,
    ) -> KeyResultListResponse:
        """Return key results newest first, optionally by objective or owner."""
        query = select(KeyResult).order_by(KeyResult.created_at.desc())
        if objective_id is not None:
            query = query.where(KeyResult.objective_id == objective_id)
        if owner_id is not None:
            query = query.where(KeyResult.owner_id == owner_id)

        count_q = query.with_only_columns(func.count()).order_by(None)
        total: int = (await db.execute(count_q)).scalar_one()

        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        return KeyResultListResponse(
            data=[KeyResultResponse.model_validate(k) for k in rows],
            meta=PaginationMeta.build(pagination, total),
        )

    @staticmethod
    async def get_key_result(db: AsyncSession, key_result_id: uuid.UUID) -> KeyResult:
        key_result = await db.get(KeyResult, key_result_id)
        if key_result is None:
            raise NotFoundException("KeyResult", key_result_id)
        return key_result

    @staticmethod
    async def create_key_result(
        db: AsyncSession,
        data: KeyResultCreate,
        actor: Actor,
    ) -> KeyResult:
        """Create a key result; ``current_value`` starts at ``starting_value``."""
        objective = await _load_objective(db, data.objective_id)
        if not _can_edit_objective(actor, objective):
            raise ForbiddenException("Not authorized to add key results to this objective.")

        fields = data.model_dump()
        fields["owner_id"] = data.owner_id or actor.id
        key_result = KeyResult(**fields, current_value=data.starting_value)
        db.add(key_result)
        await db.flush()
        return key_result

    @staticmethod
    async def update_key_result(
        db: AsyncSession,
        key_result_id: uuid.UUID,
        data: KeyResultUpdate,
        actor: Actor,
    ) -> KeyResult:
        """Partial update. KR owner, objective owner, team manager or admin."""
        key_result = await KeyResultService.get_key_result(db, key_result_id)
        objective = await _load_objective(db, key_result.objective_id)
        if key_result.owner_id != actor.id and not _can_edit_objective(actor, objective):
            raise ForbiddenException("Not authorized to update this key result.")

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(key_result, field, value)
        await db.flush()
        return key_result

    @staticmethod
    async def delete_key_result(
        db: AsyncSession,
        key_result_id: uuid.UUID,
        actor: Actor,
    ) -> uuid.UUID:
        """Delete a key result and its check-ins; returns the parent objective id."""
        key_result = await KeyResultService.get_key_result(db, key_result_id)
        objective = await _load_objective(db, key_result.objective_id)
        if key_result.owner_id != actor.id and not _is_owner_or_admin(actor, objective):
            raise ForbiddenException("Not authorized to delete this key result.")

        objective_id = key_result.objective_id
        await db.execute(delete(CheckIn).where(CheckIn.key_result_id == key_result_id))
        await db.delete(key_result)
        await db.flush()
        return objective_id
