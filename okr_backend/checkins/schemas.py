"""Check-in Pydantic schemas."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from okr_backend.common.constants import Confidence


class CheckInCreate(BaseModel):
    """Body for submitting a check-in against a key result."""

    key_result_id: uuid.UUID
    current_value: float
    confidence: Confidence
    status_comment: Optional[str] = Field(default=None, max_length=2000)
    blockers: Optional[str] = Field(default=None, max_length=2000)


class CheckInResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    key_result_id: uuid.UUID
    user_id: uuid.UUID
    current_value: float
    progress: int
    confidence: Confidence
    status_comment: Optional[str] = None
    blockers: Optional[str] = None
    is_late: bool
    submitted_at: datetime


class CheckInStats(BaseModel):
    """Per-user check-in compliance summary."""

    total_checkins: int
    late_checkins: int
    recent_checkins: int
    overall_confidence: Confidence
    compliance_rate: int
