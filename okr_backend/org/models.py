"""Org ORM models: User, Department, Team and their membership tables.

Users belong to zero or more departments and teams. Membership rows carry
``joined_at`` so "a user's first team / department" is well defined: it is
the membership created earliest.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from okr_backend.common.constants import UserRole
from okr_backend.database import Base, enum_column_type, utcnow


# ═════════════════════════════════════════════════════════════════════
# Membership tables
# ═════════════════════════════════════════════════════════════════════

user_departments = sa.Table(
    "user_departments",
    Base.metadata,
    sa.Column(
        "user_id",
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column(
        "department_id",
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column("joined_at", sa.DateTime(timezone=True), default=utcnow, nullable=False),
)

user_teams = sa.Table(
    "user_teams",
    Base.metadata,
    sa.Column(
        "user_id",
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column(
        "team_id",
        UUID(as_uuid=True),
        sa.ForeignKey("teams.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column("joined_at", sa.DateTime(timezone=True), default=utcnow, nullable=False),
)


# ═════════════════════════════════════════════════════════════════════
# User
# ═════════════════════════════════════════════════════════════════════


class User(Base):
    """Organisation member."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        enum_column_type(UserRole, "user_role"),
        default=UserRole.member,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow,
    )

    # ── Relationships ───────────────────────────────────────────────
    departments: Mapped[list[Department]] = relationship(
        secondary=user_departments,
        back_populates="members",
        order_by=user_departments.c.joined_at,
    )
    teams: Mapped[list[Team]] = relationship(
        secondary=user_teams,
        back_populates="members",
        order_by=user_teams.c.joined_at,
    )

    def __repr__(self) -> str:
        return f"<User {self.email!r} ({self.role.value})>"


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class Department(Base):
    """Organisational department."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), unique=True, nullable=False)
    code: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    head_of_department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", name="fk_dept_head"),
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow,
    )

    # ── Relationships ───────────────────────────────────────────────
    teams: Mapped[list[Team]] = relationship(back_populates="department")
    members: Mapped[list[User]] = relationship(
        secondary=user_departments,
        back_populates="departments",
    )

    @validates("code")
    def _normalise_code(self, key: str, value: str) -> str:
        return value.strip().upper()

    def __repr__(self) -> str:
        return f"<Department {self.name!r} ({self.code})>"


# ═════════════════════════════════════════════════════════════════════
# Team
# ═════════════════════════════════════════════════════════════════════


class Team(Base):
    """Team inside exactly one department."""

    __tablename__ = "teams"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id"),
        nullable=False,
    )
    leader_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", name="fk_team_leader"),
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    member_count: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow,
    )

    # ── Relationships ───────────────────────────────────────────────
    department: Mapped[Department] = relationship(back_populates="teams")
    members: Mapped[list[User]] = relationship(
        secondary=user_teams,
        back_populates="teams",
    )

    def __repr__(self) -> str:
        return f"<Team {self.name!r}>"
