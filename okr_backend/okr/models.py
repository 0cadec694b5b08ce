"""OKR ORM models: Objective, KeyResult, CheckIn.

``progress`` / ``confidence`` on Objective and KeyResult are rollup columns:
they are written by the aggregator in ``okr_backend.okr.progress`` and are
never edited by hand.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from okr_backend.common.constants import (
    Confidence,
    KeyResultStatus,
    MetricType,
    ObjectiveStatus,
    ObjectiveType,
    TimePeriod,
)
from okr_backend.database import Base, enum_column_type, utcnow


# ═════════════════════════════════════════════════════════════════════
# Objective
# ═════════════════════════════════════════════════════════════════════


class Objective(Base):
    """Goal statement at company, department, team or individual scope."""

    __tablename__ = "objectives"
    __table_args__ = (
        sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_objective_progress"),
        sa.Index("ix_objectives_owner_status", "owner_id", "status"),
        sa.Index("ix_objectives_department_status", "department_id", "status"),
        sa.Index("ix_objectives_team_status", "team_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    type: Mapped[ObjectiveType] = mapped_column(
        enum_column_type(ObjectiveType, "objective_type"), nullable=False,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False,
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id"),
    )
    team_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("teams.id"),
    )
    aligned_to_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("objectives.id", ondelete="SET NULL"),
    )
    time_period: Mapped[TimePeriod] = mapped_column(
        enum_column_type(TimePeriod, "time_period"), nullable=False,
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    status: Mapped[ObjectiveStatus] = mapped_column(
        enum_column_type(ObjectiveStatus, "objective_status"),
        default=ObjectiveStatus.active,
        nullable=False,
    )
    category: Mapped[Optional[str]] = mapped_column(sa.String(100))
    progress: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    confidence: Mapped[Confidence] = mapped_column(
        enum_column_type(Confidence, "confidence_level"),
        default=Confidence.on_track,
        nullable=False,
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow,
    )

    # ── Relationships ───────────────────────────────────────────────
    key_results: Mapped[list[KeyResult]] = relationship(
        back_populates="objective",
        order_by="KeyResult.created_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Objective {self.title!r} ({self.type.value})>"


# ═════════════════════════════════════════════════════════════════════
# KeyResult
# ═════════════════════════════════════════════════════════════════════


class KeyResult(Base):
    """Measurable numeric target under one objective."""

    __tablename__ = "key_results"
    __table_args__ = (
        sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_key_result_progress"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    objective_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("objectives.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False, index=True,
    )
    metric_type: Mapped[MetricType] = mapped_column(
        enum_column_type(MetricType, "metric_type"), nullable=False,
    )
    unit: Mapped[Optional[str]] = mapped_column(sa.String(30))
    starting_value: Mapped[float] = mapped_column(sa.Float, nullable=False)
    target_value: Mapped[float] = mapped_column(sa.Float, nullable=False)
    current_value: Mapped[float] = mapped_column(sa.Float, nullable=False)
    progress: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    confidence: Mapped[Confidence] = mapped_column(
        enum_column_type(Confidence, "confidence_level"),
        default=Confidence.on_track,
        nullable=False,
    )
    due_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    last_checkin_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    status: Mapped[KeyResultStatus] = mapped_column(
        enum_column_type(KeyResultStatus, "key_result_status"),
        default=KeyResultStatus.active,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow,
    )

    # ── Relationships ───────────────────────────────────────────────
    objective: Mapped[Objective] = relationship(back_populates="key_results")
    checkins: Mapped[list[CheckIn]] = relationship(
        back_populates="key_result",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<KeyResult {self.title!r} {self.progress}%>"


# ═════════════════════════════════════════════════════════════════════
# CheckIn
# ═════════════════════════════════════════════════════════════════════


class CheckIn(Base):
    """Append-only snapshot of a key result's current value."""

    __tablename__ = "checkins"
    __table_args__ = (
        sa.Index("ix_checkins_key_result_submitted", "key_result_id", "submitted_at"),
        sa.Index("ix_checkins_user_submitted", "user_id", "submitted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    key_result_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("key_results.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False,
    )
    current_value: Mapped[float] = mapped_column(sa.Float, nullable=False)
    progress: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    confidence: Mapped[Confidence] = mapped_column(
        enum_column_type(Confidence, "confidence_level"), nullable=False,
    )
    status_comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    blockers: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_late: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )

    # ── Relationships ───────────────────────────────────────────────
    key_result: Mapped[KeyResult] = relationship(back_populates="checkins")

    def __repr__(self) -> str:
        return f"<CheckIn kr={self.key_result_id} {self.progress}% late={self.is_late}>"
