"""Check-in lateness and compliance statistics.

A check-in is late when more than ``CHECKIN_LATE_AFTER_DAYS`` of calendar
time have passed since the previous check-in on the same key result. The
flag is computed once, at submission, and stored on the new row.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from okr_backend.checkins.schemas import CheckInStats
from okr_backend.common.constants import CONFIDENCE_SCORES, Confidence
from okr_backend.config import settings
from okr_backend.okr.progress import compute_progress, round_half_up
from okr_backend.repository import Repository


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (as some stores return them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def late_threshold() -> timedelta:
    return timedelta(days=settings.CHECKIN_LATE_AFTER_DAYS)


def is_late_after(previous_submitted_at: Optional[datetime], submitted_at: datetime) -> bool:
    """Strict comparison: exactly the threshold apart is still on time."""
    if previous_submitted_at is None:
        return False
    return as_utc(submitted_at) - as_utc(previous_submitted_at) > late_threshold()


async def is_late(
    key_result_id: uuid.UUID,
    submitted_at: datetime,
    repository: Repository,
) -> bool:
    """Whether a check-in submitted at *submitted_at* is late.

    The first check-in on a key result is never late.
    """
    previous = await repository.find_latest_checkin(key_result_id)
    return is_late_after(previous.submitted_at if previous else None, submitted_at)


def check_in_progress(key_result, current_value: float) -> int:
    """Progress snapshot stored on a check-in row."""
    return compute_progress(key_result.starting_value, key_result.target_value, current_value)


def compliance_rate(total: int, late: int) -> int:
    if total == 0:
        return 100
    return round_half_up((total - late) / total * 100)


def summarize_checkins(
    checkins: Sequence,
    now: Optional[datetime] = None,
) -> CheckInStats:
    """Totals, lateness, recency and average confidence for a user's check-ins."""
    now = as_utc(now or datetime.now(timezone.utc))
    window_start = now - timedelta(days=settings.RECENT_CHECKIN_WINDOW_DAYS)

    total = len(checkins)
    late = sum(1 for c in checkins if c.is_late)
    recent = sum(1 for c in checkins if as_utc(c.submitted_at) >= window_start)

    overall = Confidence.on_track
    if total:
        average = sum(CONFIDENCE_SCORES[Confidence(c.confidence)] for c in checkins) / total
        if average < 2:
            overall = Confidence.off_track
        elif average < 2.5:
            overall = Confidence.at_risk

    return CheckInStats(
        total_checkins=total,
        late_checkins=late,
        recent_checkins=recent,
        overall_confidence=overall,
        compliance_rate=compliance_rate(total, late),
    )
