"""Check-in endpoints — submit, list, per-user stats."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from okr_backend.checkins.schemas import CheckInCreate, CheckInResponse, CheckInStats
from okr_backend.checkins.service import CheckInService
from okr_backend.database import get_db
from okr_backend.dependencies import get_actor
from okr_backend.notifications.service import DatabaseDispatcher, notify_checkin_submitted
from okr_backend.okr.progress import apply_key_result_change
from okr_backend.okr.schemas import KeyResultResponse, ObjectiveResponse
from okr_backend.org.schemas import Actor
from okr_backend.repository import SqlAlchemyRepository

router = APIRouter(prefix="", tags=["checkins"])


# ── POST / — submit a check-in ──────────────────────────────────────

@router.post("", response_model=CheckInResponse, status_code=201)
async def submit_checkin(
    body: CheckInCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Record progress on a key result, refresh rollups, notify stakeholders."""
    repository = SqlAlchemyRepository(db)
    checkin, key_result, objective = await CheckInService.submit_checkin(
        db, body, actor, repository,
    )
    await db.commit()

    # Snapshots stay readable if a later step rolls the session back.
    response = CheckInResponse.model_validate(checkin)
    key_result_snapshot = KeyResultResponse.model_validate(key_result)
    objective_snapshot = ObjectiveResponse.model_validate(objective)

    await apply_key_result_change(key_result_snapshot, repository)
    await notify_checkin_submitted(
        repository, DatabaseDispatcher(db), key_result_snapshot, objective_snapshot, actor,
    )
    return response


# ── GET / — list check-ins ──────────────────────────────────────────

@router.get("", response_model=list[CheckInResponse])
async def list_checkins(
    key_result_id: Optional[uuid.UUID] = Query(default=None),
    user_id: Optional[uuid.UUID] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    return await CheckInService.list_checkins(
        db, key_result_id=key_result_id, user_id=user_id,
    )


# ── GET /stats/{user_id} ────────────────────────────────────────────

@router.get("/stats/{user_id}", response_model=CheckInStats)
async def checkin_stats(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Totals, late count, recent activity, compliance and overall confidence."""
    return await CheckInService.get_user_stats(db, user_id, SqlAlchemyRepository(db))
