"""OKR router — objectives and key results.

Every write is committed before the aggregator and the notification
fan-out run. Responses are serialized right after the commit: both later
steps may roll the session back, which expires loaded rows.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from okr_backend.common.constants import NotificationActionType, ObjectiveStatus, ObjectiveType
from okr_backend.common.pagination import PaginationParams
from okr_backend.database import get_db
from okr_backend.dependencies import get_actor
from okr_backend.notifications.service import DatabaseDispatcher, notify_okr_event
from okr_backend.okr.progress import apply_key_result_change, refresh_objective_after_delete
from okr_backend.okr.schemas import (
    KeyResultCreate,
    KeyResultListResponse,
    KeyResultResponse,
    KeyResultUpdate,
    ObjectiveCreate,
    ObjectiveDetail,
    ObjectiveListResponse,
    ObjectiveResponse,
    ObjectiveUpdate,
)
from okr_backend.okr.service import KeyResultService, ObjectiveService
from okr_backend.org.schemas import Actor
from okr_backend.repository import SqlAlchemyRepository

objectives_router = APIRouter()
key_results_router = APIRouter()


# ═════════════════════════════════════════════════════════════════════
# Objectives
# ═════════════════════════════════════════════════════════════════════


@objectives_router.get("", response_model=ObjectiveListResponse)
async def list_objectives(
    type: Optional[ObjectiveType] = Query(default=None),
    status: Optional[ObjectiveStatus] = Query(default=None),
    owner_id: Optional[uuid.UUID] = Query(default=None),
    department_id: Optional[uuid.UUID] = Query(default=None),
    team_id: Optional[uuid.UUID] = Query(default=None),
    year: Optional[int] = Query(default=None),
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """List objectives (paginated, filterable)."""
    return await ObjectiveService.list_objectives(
        db,
        pagination,
        type=type,
        status=status,
        owner_id=owner_id,
        department_id=department_id,
        team_id=team_id,
        year=year,
    )


@objectives_router.get("/{objective_id}", response_model=ObjectiveDetail)
async def get_objective(
    objective_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get an objective with its key results."""
    return await ObjectiveService.get_objective(db, objective_id)


@objectives_router.post("", response_model=ObjectiveResponse, status_code=201)
async def create_objective(
    body: ObjectiveCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Create an objective and notify the relevant part of the org."""
    objective = await ObjectiveService.create_objective(db, body, actor)
    await db.commit()

    response = ObjectiveResponse.model_validate(objective)
    await notify_okr_event(
        SqlAlchemyRepository(db),
        DatabaseDispatcher(db),
        response,
        NotificationActionType.okr_created,
        actor,
    )
    return response


@objectives_router.put("/{objective_id}", response_model=ObjectiveResponse)
async def update_objective(
    objective_id: uuid.UUID,
    body: ObjectiveUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    objective = await ObjectiveService.update_objective(db, objective_id, body, actor)
    await db.commit()

    response = ObjectiveResponse.model_validate(objective)
    await notify_okr_event(
        SqlAlchemyRepository(db),
        DatabaseDispatcher(db),
        response,
        NotificationActionType.okr_updated,
        actor,
    )
    return response


@objectives_router.put("/{objective_id}/publish", response_model=ObjectiveResponse)
async def publish_objective(
    objective_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Move a draft objective to active once it has key results."""
    objective = await ObjectiveService.publish_objective(db, objective_id, actor)
    await db.commit()
    return ObjectiveResponse.model_validate(objective)


@objectives_router.delete("/{objective_id}")
async def delete_objective(
    objective_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delete an objective with its key results and check-ins."""
    snapshot = await ObjectiveService.delete_objective(db, objective_id, actor)
    await db.commit()

    await notify_okr_event(
        SqlAlchemyRepository(db),
        DatabaseDispatcher(db),
        snapshot,
        NotificationActionType.okr_deleted,
        actor,
    )
    return {"message": "Objective deleted successfully"}


# ═════════════════════════════════════════════════════════════════════
# Key Results
# ═════════════════════════════════════════════════════════════════════


async def _with_fresh_rollup(db: AsyncSession, key_result) -> KeyResultResponse:
    snapshot = KeyResultResponse.model_validate(key_result)
    rollup, _ = await apply_key_result_change(snapshot, SqlAlchemyRepository(db))
    return snapshot.model_copy(
        update={"progress": rollup.progress, "confidence": rollup.confidence},
    )


@key_results_router.get("", response_model=KeyResultListResponse)
async def list_key_results(
    objective_id: Optional[uuid.UUID] = Query(default=None),
    owner_id: Optional[uuid.UUID] = Query(default=None),
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """List key results (paginated, newest first)."""
    return await KeyResultService.list_key_results(
        db, pagination, objective_id=objective_id, owner_id=owner_id,
    )


@key_results_router.get("/{key_result_id}", response_model=KeyResultResponse)
async def get_key_result(
    key_result_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await KeyResultService.get_key_result(db, key_result_id)


@key_results_router.post("", response_model=KeyResultResponse, status_code=201)
async def create_key_result(
    body: KeyResultCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Create a key result and refresh its objective's rollup."""
    key_result = await KeyResultService.create_key_result(db, body, actor)
    await db.commit()
    return await _with_fresh_rollup(db, key_result)


@key_results_router.put("/{key_result_id}", response_model=KeyResultResponse)
async def update_key_result(
    key_result_id: uuid.UUID,
    body: KeyResultUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    key_result = await KeyResultService.update_key_result(db, key_result_id, body, actor)
    await db.commit()
    return await _with_fresh_rollup(db, key_result)


@key_results_router.delete("/{key_result_id}")
async def delete_key_result(
    key_result_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delete a key result; its objective is re-aggregated without it."""
    objective_id = await KeyResultService.delete_key_result(db, key_result_id, actor)
    await db.commit()
    await refresh_objective_after_delete(objective_id, SqlAlchemyRepository(db))
    return {"message": "Key result deleted successfully"}
