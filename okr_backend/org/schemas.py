"""Org Pydantic schemas — the acting user and team membership."""


import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict

from okr_backend.common.constants import UserRole


class Actor(BaseModel):
    """Snapshot of the user performing a request.

    Detached from the session so it stays readable after a rollback.
    ``team_id`` is the user's first team, if any.
    """

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    name: str
    role: UserRole
    team_id: Optional[uuid.UUID] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin


class TeamMemberAdd(BaseModel):
    user_id: uuid.UUID


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    leader_id: Optional[uuid.UUID] = None
    is_active: bool
    member_count: int
