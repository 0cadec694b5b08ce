"""OKR Pydantic v2 schemas — rollups, request bodies and responses.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response          → response bodies (read)
"""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from okr_backend.common.constants import (
    Confidence,
    KeyResultStatus,
    MetricType,
    ObjectiveStatus,
    ObjectiveType,
    TimePeriod,
)
from okr_backend.common.pagination import PaginationMeta


# ═════════════════════════════════════════════════════════════════════
# Rollup
# ═════════════════════════════════════════════════════════════════════


class Rollup(BaseModel):
    """Derived progress/confidence pair written back to a KeyResult or Objective."""

    model_config = ConfigDict(frozen=True)

    progress: int = Field(ge=0, le=100)
    confidence: Confidence


# ═════════════════════════════════════════════════════════════════════
# Objective
# ═════════════════════════════════════════════════════════════════════


class ObjectiveCreate(BaseModel):
    """Body for creating an objective. Owner defaults to the actor."""

    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    type: ObjectiveType
    owner_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None
    team_id: Optional[uuid.UUID] = None
    aligned_to_id: Optional[uuid.UUID] = None
    time_period: TimePeriod
    year: int = Field(ge=2000, le=2100)
    category: Optional[str] = None

    @model_validator(mode="after")
    def _scope_ids_present(self) -> "ObjectiveCreate":
        if self.type == ObjectiveType.department and self.department_id is None:
            raise ValueError("department_id is required for department objectives")
        if self.type == ObjectiveType.team and self.team_id is None:
            raise ValueError("team_id is required for team objectives")
        return self


class ObjectiveUpdate(BaseModel):
    """Partial update; rollup fields are not writable."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    status: Optional[ObjectiveStatus] = None
    aligned_to_id: Optional[uuid.UUID] = None
    time_period: Optional[TimePeriod] = None
    year: Optional[int] = Field(default=None, ge=2000, le=2100)
    category: Optional[str] = None


class ObjectiveResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: Optional[str] = None
    type: ObjectiveType
    owner_id: uuid.UUID
    department_id: Optional[uuid.UUID] = None
    team_id: Optional[uuid.UUID] = None
    aligned_to_id: Optional[uuid.UUID] = None
    time_period: TimePeriod
    year: int
    status: ObjectiveStatus
    category: Optional[str] = None
    progress: int
    confidence: Confidence
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Key Result
# ═════════════════════════════════════════════════════════════════════


class KeyResultCreate(BaseModel):
    """Body for creating a key result. ``current_value`` starts at ``starting_value``."""

    objective_id: uuid.UUID
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    owner_id: Optional[uuid.UUID] = None
    metric_type: MetricType
    unit: Optional[str] = None
    starting_value: float
    target_value: float
    due_date: Optional[date] = None


class KeyResultUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    unit: Optional[str] = None
    starting_value: Optional[float] = None
    target_value: Optional[float] = None
    current_value: Optional[float] = None
    due_date: Optional[date] = None
    status: Optional[KeyResultStatus] = None


class KeyResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    objective_id: uuid.UUID
    title: str
    description: Optional[str] = None
    owner_id: uuid.UUID
    metric_type: MetricType
    unit: Optional[str] = None
    starting_value: float
    target_value: float
    current_value: float
    progress: int
    confidence: Confidence
    due_date: Optional[date] = None
    last_checkin_at: Optional[datetime] = None
    status: KeyResultStatus


# ═════════════════════════════════════════════════════════════════════
# Composite responses
# ═════════════════════════════════════════════════════════════════════


class ObjectiveDetail(ObjectiveResponse):
    """Objective with its key results, oldest first."""

    key_results: list[KeyResultResponse] = []


class ObjectiveListResponse(BaseModel):
    data: list[ObjectiveResponse]
    meta: PaginationMeta


class KeyResultListResponse(BaseModel):
    data: list[KeyResultResponse]
    meta: PaginationMeta
