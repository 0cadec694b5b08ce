"""Rollup aggregator test suite — key result progress, confidence bands,
objective aggregation, persistence order and failure isolation.

Uses the shared conftest.py pattern with in-memory SQLite.
"""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from okr_backend.common.constants import Confidence
from okr_backend.common.exceptions import RepositoryError
from okr_backend.okr.models import KeyResult, Objective
from okr_backend.okr.progress import (
    apply_key_result_change,
    compute_progress,
    confidence_for_progress,
    recompute_key_result,
    recompute_objective,
    refresh_objective_after_delete,
    rollup_objective,
    round_half_up,
)
from okr_backend.okr.schemas import Rollup
from okr_backend.org.models import User
from okr_backend.repository import SqlAlchemyRepository
from tests.conftest import _make_key_result, _make_objective, _make_user


# ── Helpers ─────────────────────────────────────────────────────────


def _kr(progress: int, confidence: Confidence) -> SimpleNamespace:
    return SimpleNamespace(progress=progress, confidence=confidence)


async def _seed_objective(db: AsyncSession) -> tuple[User, Objective]:
    owner = User(**_make_user(name="Owner"))
    db.add(owner)
    await db.flush()
    objective = Objective(**_make_objective(owner_id=owner.id))
    db.add(objective)
    await db.flush()
    return owner, objective


async def _seed_key_result(
    db: AsyncSession,
    objective: Objective,
    owner: User,
    **kwargs,
) -> KeyResult:
    kr = KeyResult(**_make_key_result(objective_id=objective.id, owner_id=owner.id, **kwargs))
    db.add(kr)
    await db.flush()
    return kr


# ═════════════════════════════════════════════════════════════════════
# 1. KEY RESULT PROGRESS
# ═════════════════════════════════════════════════════════════════════


class TestComputeProgress:
    """Percentage of the way from starting value to target."""

    async def test_halfway(self):
        assert compute_progress(0, 100, 50) == 50

    async def test_offset_start(self):
        assert compute_progress(20, 120, 70) == 50

    async def test_decreasing_metric(self):
        """Targets below the start (e.g. churn reduction) count downwards."""
        assert compute_progress(100, 0, 25) == 75

    async def test_degenerate_target_is_complete(self):
        assert compute_progress(10, 10, 0) == 100
        assert compute_progress(10, 10, 10) == 100

    async def test_clamped_above(self):
        assert compute_progress(0, 100, 250) == 100

    async def test_clamped_below(self):
        assert compute_progress(0, 100, -40) == 0

    async def test_rounds_half_up(self):
        assert compute_progress(0, 200, 5) == 3  # 2.5% → 3
        assert compute_progress(0, 3, 1) == 33

    async def test_round_half_up_negative(self):
        assert round_half_up(-2.5) == -2
        assert round_half_up(2.5) == 3
        assert round_half_up(2.4999) == 2


class TestConfidenceBands:
    """Confidence derived from progress thresholds."""

    @pytest.mark.parametrize(
        ("progress", "expected"),
        [
            (100, Confidence.on_track),
            (70, Confidence.on_track),
            (69, Confidence.at_risk),
            (40, Confidence.at_risk),
            (39, Confidence.off_track),
            (0, Confidence.off_track),
        ],
    )
    async def test_thresholds(self, progress, expected):
        assert confidence_for_progress(progress) == expected

    async def test_recompute_key_result(self):
        kr = SimpleNamespace(starting_value=0, target_value=10, current_value=5)
        assert recompute_key_result(kr) == Rollup(progress=50, confidence=Confidence.at_risk)


# ═════════════════════════════════════════════════════════════════════
# 2. OBJECTIVE ROLLUP
# ═════════════════════════════════════════════════════════════════════


class TestRollupObjective:
    """Mean progress and count-based confidence across sibling key results."""

    async def test_empty_objective(self):
        assert rollup_objective([]) == Rollup(progress=0, confidence=Confidence.on_track)

    async def test_all_on_track(self):
        rollup = rollup_objective([_kr(80, Confidence.on_track), _kr(90, Confidence.on_track)])
        assert rollup == Rollup(progress=85, confidence=Confidence.on_track)

    async def test_mean_rounds_half_up(self):
        rollup = rollup_objective([_kr(33, Confidence.off_track), _kr(34, Confidence.off_track)])
        assert rollup.progress == 34

    async def test_majority_off_track(self):
        rollup = rollup_objective([
            _kr(10, Confidence.off_track),
            _kr(20, Confidence.off_track),
            _kr(90, Confidence.on_track),
        ])
        assert rollup.confidence == Confidence.off_track

    async def test_exactly_half_off_track(self):
        rollup = rollup_objective([
            _kr(10, Confidence.off_track),
            _kr(20, Confidence.off_track),
            _kr(90, Confidence.on_track),
            _kr(95, Confidence.on_track),
        ])
        assert rollup.confidence == Confidence.off_track

    async def test_single_off_track_is_at_risk(self):
        rollup = rollup_objective([
            _kr(10, Confidence.off_track),
            _kr(90, Confidence.on_track),
            _kr(95, Confidence.on_track),
        ])
        assert rollup.confidence == Confidence.at_risk

    async def test_half_at_risk(self):
        rollup = rollup_objective([_kr(50, Confidence.at_risk), _kr(90, Confidence.on_track)])
        assert rollup.confidence == Confidence.at_risk

    async def test_minority_at_risk_stays_on_track(self):
        rollup = rollup_objective([
            _kr(50, Confidence.at_risk),
            _kr(90, Confidence.on_track),
            _kr(95, Confidence.on_track),
        ])
        assert rollup.confidence == Confidence.on_track


# ═════════════════════════════════════════════════════════════════════
# 3. PERSISTED ROLLUPS
# ═════════════════════════════════════════════════════════════════════


class TestPersistedRollup:
    """Write-back through the SQLAlchemy repository."""

    async def test_apply_change_updates_key_result_then_objective(self, db: AsyncSession):
        owner, objective = await _seed_objective(db)
        kr = await _seed_key_result(db, objective, owner, current_value=80)
        await _seed_key_result(db, objective, owner, current_value=20)

        kr_rollup, objective_rollup = await apply_key_result_change(kr, SqlAlchemyRepository(db))

        assert kr_rollup == Rollup(progress=80, confidence=Confidence.on_track)
        # Sibling was never rolled up, so it still reads 0 / on-track.
        assert objective_rollup == Rollup(progress=40, confidence=Confidence.on_track)

        stored = (
            await db.execute(
                select(Objective)
                .where(Objective.id == objective.id)
                .execution_options(populate_existing=True)
            )
        ).scalars().one()
        assert stored.progress == 40

    async def test_recompute_reads_stored_key_results(self, db: AsyncSession):
        owner, objective = await _seed_objective(db)
        repository = SqlAlchemyRepository(db)
        first = await _seed_key_result(db, objective, owner, current_value=100)
        second = await _seed_key_result(db, objective, owner, current_value=10)

        await apply_key_result_change(first, repository)
        _, objective_rollup = await apply_key_result_change(second, repository)

        assert objective_rollup == Rollup(progress=55, confidence=Confidence.off_track)

    async def test_idempotent(self, db: AsyncSession):
        owner, objective = await _seed_objective(db)
        repository = SqlAlchemyRepository(db)
        kr = await _seed_key_result(db, objective, owner, current_value=45)

        first = await apply_key_result_change(kr, repository)
        second = await apply_key_result_change(kr, repository)
        assert first == second

    async def test_objective_without_key_results(self, db: AsyncSession):
        _, objective = await _seed_objective(db)
        rollup = await recompute_objective(objective.id, SqlAlchemyRepository(db))
        assert rollup == Rollup(progress=0, confidence=Confidence.on_track)

    async def test_refresh_after_delete(self, db: AsyncSession):
        owner, objective = await _seed_objective(db)
        repository = SqlAlchemyRepository(db)
        keep = await _seed_key_result(db, objective, owner, current_value=90)
        drop = await _seed_key_result(db, objective, owner, current_value=0)
        await apply_key_result_change(keep, repository)
        await apply_key_result_change(drop, repository)

        await db.delete(drop)
        await db.flush()
        rollup = await refresh_objective_after_delete(objective.id, repository)

        assert rollup == Rollup(progress=90, confidence=Confidence.on_track)


# ═════════════════════════════════════════════════════════════════════
# 4. FAILURE ISOLATION
# ═════════════════════════════════════════════════════════════════════


class TestRollupFailures:
    """Repository failures are logged and never raised."""

    async def test_read_failure_skips_write(self):
        repository = AsyncMock()
        repository.find_key_results_by_objective.side_effect = RepositoryError("find")

        assert await recompute_objective(uuid.uuid4(), repository) is None
        repository.save_objective_rollup.assert_not_awaited()

    async def test_write_failure_returns_none(self):
        repository = AsyncMock()
        repository.find_key_results_by_objective.return_value = []
        repository.save_objective_rollup.side_effect = RepositoryError("save")

        assert await recompute_objective(uuid.uuid4(), repository) is None

    async def test_key_result_failure_leaves_objective_alone(self):
        repository = AsyncMock()
        repository.save_key_result_rollup.side_effect = RepositoryError("save")
        kr = SimpleNamespace(
            id=uuid.uuid4(),
            objective_id=uuid.uuid4(),
            starting_value=0,
            target_value=10,
            current_value=10,
        )

        rollup, objective_rollup = await apply_key_result_change(kr, repository)

        assert rollup == Rollup(progress=100, confidence=Confidence.on_track)
        assert objective_rollup is None
        repository.find_key_results_by_objective.assert_not_awaited()
        repository.save_objective_rollup.assert_not_awaited()
