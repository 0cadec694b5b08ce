"""Notification fan-out — who hears about an OKR or check-in event.

Recipients are resolved fresh for every event by walking the org hierarchy
(users ↔ teams ↔ departments). Every path feeds one ``RecipientSet``, so a
user reachable through several paths is notified once, and the actor is
never notified about their own action.

Resolution is best-effort: a repository failure is logged and yields an
empty set rather than failing the write that triggered the event.
"""

from __future__ import annotations

import logging
import uuid
from typing import Awaitable, Callable, Iterable, Iterator, Optional, Union

from okr_backend.common.constants import NotificationActionType, ObjectiveType, UserRole
from okr_backend.common.exceptions import RepositoryError
from okr_backend.repository import Repository

logger = logging.getLogger(__name__)

UserId = Union[uuid.UUID, str]


def canonical_user_id(user_id: UserId) -> str:
    """Canonical string form of a user id; UUIDs compare case-insensitively."""
    text = str(user_id).strip()
    try:
        return str(uuid.UUID(text))
    except ValueError:
        return text


class RecipientSet:
    """Set of user ids with built-in actor exclusion.

    Ids are compared by ``canonical_user_id``. Iteration follows the order
    in which recipients were first added.
    """

    def __init__(self, actor_id: Optional[UserId] = None) -> None:
        self.actor_id = canonical_user_id(actor_id) if actor_id is not None else None
        self._ids: dict[str, None] = {}

    def add(self, user_id: Optional[UserId]) -> bool:
        """Add *user_id* unless it is empty, the actor, or already present."""
        if user_id is None:
            return False
        key = canonical_user_id(user_id)
        if key == self.actor_id or key in self._ids:
            return False
        self._ids[key] = None
        return True

    def add_all(self, user_ids: Iterable[Optional[UserId]]) -> None:
        for user_id in user_ids:
            self.add(user_id)

    def user_ids(self) -> list[uuid.UUID]:
        return [uuid.UUID(key) for key in self._ids]

    def __contains__(self, user_id: object) -> bool:
        if user_id is None:
            return False
        return canonical_user_id(str(user_id)) in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"<RecipientSet {len(self)} recipient(s)>"


# ── Shared hierarchy lookups ────────────────────────────────────────


async def _add_active_role(
    recipients: RecipientSet, role: UserRole, repository: Repository,
) -> None:
    users = await repository.find_active_users_by_role(role)
    recipients.add_all(user.id for user in users)


async def _add_department_head(
    recipients: RecipientSet, department_id: uuid.UUID, repository: Repository,
) -> None:
    head = await repository.find_department_head(department_id)
    if head is not None:
        recipients.add(head.id)


def _add_actor_team_leader(recipients: RecipientSet, actor) -> None:
    if actor is not None and actor.teams:
        recipients.add(actor.teams[0].leader_id)


async def _find_actor(actor_id: UserId, repository: Repository):
    """The actor's user row, or None when the id is not a UUID or unknown."""
    try:
        user_id = uuid.UUID(canonical_user_id(actor_id))
    except ValueError:
        logger.warning("Actor id %r is not a UUID; skipping hierarchy lookup", actor_id)
        return None
    return await repository.get_user(user_id)


# ── Objective-type branches ─────────────────────────────────────────


async def _company(objective, actor_id: UserId, repository: Repository, recipients: RecipientSet) -> None:
    await _add_active_role(recipients, UserRole.admin, repository)
    await _add_active_role(recipients, UserRole.manager, repository)


async def _department(objective, actor_id: UserId, repository: Repository, recipients: RecipientSet) -> None:
    if objective.department_id is None:
        return

    await _add_department_head(recipients, objective.department_id, repository)

    teams = await repository.find_teams_by_department(objective.department_id)
    leader_ids = [team.leader_id for team in teams if team.leader_id is not None]
    leaders = await repository.find_active_users_by_ids(leader_ids)
    recipients.add_all(leader.id for leader in leaders)

    await _add_active_role(recipients, UserRole.admin, repository)


async def _team(objective, actor_id: UserId, repository: Repository, recipients: RecipientSet) -> None:
    if objective.team_id is None:
        return
    team = await repository.get_team(objective.team_id)
    if team is None:
        return

    recipients.add(team.leader_id)
    members = await repository.find_users_by_team(team.id)
    recipients.add_all(member.id for member in members)

    if team.department_id is not None:
        await _add_department_head(recipients, team.department_id, repository)


async def _individual(objective, actor_id: UserId, repository: Repository, recipients: RecipientSet) -> None:
    # Follows the actor's hierarchy, not the objective owner's.
    actor = await _find_actor(actor_id, repository)
    if actor is None:
        return

    _add_actor_team_leader(recipients, actor)
    if actor.departments:
        await _add_department_head(recipients, actor.departments[0].id, repository)


_BRANCHES: dict[
    ObjectiveType,
    Callable[[object, UserId, Repository, RecipientSet], Awaitable[None]],
] = {
    ObjectiveType.company: _company,
    ObjectiveType.department: _department,
    ObjectiveType.team: _team,
    ObjectiveType.individual: _individual,
}


# ── Public resolvers ────────────────────────────────────────────────


async def resolve_okr_recipients(
    objective,
    action: NotificationActionType,
    actor_id: UserId,
    repository: Repository,
) -> RecipientSet:
    """Users to notify when *actor_id* creates, updates or deletes *objective*.

    *objective* needs ``type``, ``department_id`` and ``team_id``; a
    snapshot of a deleted objective works as well as a live row.
    """
    branch = _BRANCHES[ObjectiveType(objective.type)]
    recipients = RecipientSet(actor_id)
    try:
        await branch(objective, actor_id, repository, recipients)
    except RepositoryError:
        logger.exception(
            "Could not resolve %s recipients for %s objective %s",
            getattr(action, "value", action),
            ObjectiveType(objective.type).value,
            getattr(objective, "id", None),
        )
        return RecipientSet(actor_id)
    return recipients


async def resolve_checkin_recipients(
    key_result,
    objective,
    actor_id: UserId,
    repository: Repository,
) -> RecipientSet:
    """Users to notify when *actor_id* checks in on *key_result*.

    The key result owner, the actor's team leader, and the owner of the
    objective's parent (``aligned_to_id``) when it has one.
    """
    recipients = RecipientSet(actor_id)
    recipients.add(key_result.owner_id)
    try:
        actor = await _find_actor(actor_id, repository)
        _add_actor_team_leader(recipients, actor)

        if objective.aligned_to_id is not None:
            parent = await repository.get_objective(objective.aligned_to_id)
            if parent is not None:
                recipients.add(parent.owner_id)
    except RepositoryError:
        logger.exception(
            "Could not resolve check-in recipients for key result %s", key_result.id,
        )
        return RecipientSet(actor_id)
    return recipients
