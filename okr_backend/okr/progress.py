"""Progress aggregation — keeps KeyResult and Objective rollups consistent.

A KeyResult's progress is derived from its numeric bounds; an Objective's
rollup is derived from its direct KeyResults only. The KeyResult rollup is
always persisted before the parent Objective is recomputed, because the
Objective rollup reads the stored KeyResult rows.

The two writes are not wrapped in one transaction: if the Objective write
fails after the KeyResult write succeeded, the Objective stays stale until
the next event on one of its KeyResults.
"""

from __future__ import annotations

import logging
import math
import uuid
from typing import Optional, Sequence

from okr_backend.common.constants import (
    AT_RISK_MIN_PROGRESS,
    DEGENERATE_METRIC_PROGRESS,
    ON_TRACK_MIN_PROGRESS,
    Confidence,
)
from okr_backend.common.exceptions import RepositoryError
from okr_backend.okr.schemas import Rollup
from okr_backend.repository import Repository

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round halves toward +inf (``2.5 → 3``, ``-2.5 → -2``)."""
    return math.floor(value + 0.5)


# ── Key Result ──────────────────────────────────────────────────────


def confidence_for_progress(progress: int) -> Confidence:
    if progress >= ON_TRACK_MIN_PROGRESS:
        return Confidence.on_track
    if progress >= AT_RISK_MIN_PROGRESS:
        return Confidence.at_risk
    return Confidence.off_track


def compute_progress(starting_value: float, target_value: float, current_value: float) -> int:
    """Percentage of the way from start to target, clamped to [0, 100].

    A metric whose target equals its start is complete by definition.
    """
    if target_value == starting_value:
        return DEGENERATE_METRIC_PROGRESS
    ratio = (current_value - starting_value) / (target_value - starting_value)
    return max(0, min(100, round_half_up(ratio * 100)))


def recompute_key_result(key_result) -> Rollup:
    """Pure rollup of one key result; the caller persists the result."""
    progress = compute_progress(
        key_result.starting_value,
        key_result.target_value,
        key_result.current_value,
    )
    return Rollup(progress=progress, confidence=confidence_for_progress(progress))


# ── Objective ───────────────────────────────────────────────────────


def rollup_objective(key_results: Sequence) -> Rollup:
    """Aggregate sibling key results into the objective's rollup.

    An objective without key results is on-track at 0%. Otherwise progress
    is the rounded mean, and confidence is decided by counts: off-track when
    at least half are off-track, at-risk when any is off-track or at least
    half are at-risk.
    """
    if not key_results:
        return Rollup(progress=0, confidence=Confidence.on_track)

    n = len(key_results)
    progress = round_half_up(sum(kr.progress for kr in key_results) / n)
    off = sum(1 for kr in key_results if kr.confidence == Confidence.off_track)
    risk = sum(1 for kr in key_results if kr.confidence == Confidence.at_risk)

    if off >= n / 2:
        confidence = Confidence.off_track
    elif off > 0 or risk >= n / 2:
        confidence = Confidence.at_risk
    else:
        confidence = Confidence.on_track
    return Rollup(progress=progress, confidence=confidence)


async def recompute_objective(
    objective_id: uuid.UUID,
    repository: Repository,
) -> Optional[Rollup]:
    """Recompute and persist an objective's rollup.

    Returns ``None`` when the key results could not be read or the rollup
    could not be written; the failure is logged and nothing is written.
    """
    try:
        key_results = await repository.find_key_results_by_objective(objective_id)
        rollup = rollup_objective(key_results)
        await repository.save_objective_rollup(objective_id, rollup)
    except RepositoryError:
        logger.exception("Skipping rollup for objective %s", objective_id)
        return None

    logger.debug(
        "Objective %s rolled up to %s%% (%s) from %d key result(s)",
        objective_id, rollup.progress, rollup.confidence.value, len(key_results),
    )
    return rollup


async def apply_key_result_change(
    key_result,
    repository: Repository,
) -> tuple[Rollup, Optional[Rollup]]:
    """Ordered write path after a key result is created, edited or checked in.

    Persists the key result's own rollup, then refreshes its objective. The
    objective is left alone if the key result write failed.
    """
    rollup = recompute_key_result(key_result)
    try:
        await repository.save_key_result_rollup(key_result.id, rollup)
    except RepositoryError:
        logger.exception("Could not store rollup for key result %s", key_result.id)
        return rollup, None

    objective_rollup = await recompute_objective(key_result.objective_id, repository)
    return rollup, objective_rollup


async def refresh_objective_after_delete(
    objective_id: uuid.UUID,
    repository: Repository,
) -> Optional[Rollup]:
    """Delete path: the removed key result no longer counts toward the objective."""
    return await recompute_objective(objective_id, repository)
