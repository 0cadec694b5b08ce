"""Notification text and link lookups.

Both lookups are total: an action without a template renders a generic
message, and an unknown related model links to the home page.
"""

from __future__ import annotations

import uuid
from typing import Callable, Optional, Union

from okr_backend.common.constants import (
    NotificationActionType,
    NotificationPriority,
    ObjectiveType,
    RelatedModel,
)
from okr_backend.notifications.schemas import NotificationMessage

DEFAULT_ACTOR_NAME = "Someone"
DELETED_OBJECTIVE_URL = "/okrs"

FALLBACK_MESSAGE = NotificationMessage(
    title="Notification",
    message="You have a new notification",
    priority=NotificationPriority.medium,
)


def _okr_created(ctx: dict) -> NotificationMessage:
    objective_type = ctx["objective_type"]
    return NotificationMessage(
        title=f"New {_type_label(objective_type)} OKR Created",
        message=f'{ctx["actor"]} created "{ctx["title"]}"',
        priority=(
            NotificationPriority.high
            if objective_type == ObjectiveType.company
            else NotificationPriority.medium
        ),
    )


def _okr_updated(ctx: dict) -> NotificationMessage:
    return NotificationMessage(
        title="OKR Updated",
        message=f'{ctx["actor"]} updated "{ctx["title"]}"',
        priority=NotificationPriority.low,
    )


def _okr_deleted(ctx: dict) -> NotificationMessage:
    return NotificationMessage(
        title="OKR Deleted",
        message=f'{ctx["actor"]} deleted "{ctx["title"]}"',
        priority=NotificationPriority.medium,
    )


def _checkin_submitted(ctx: dict) -> NotificationMessage:
    return NotificationMessage(
        title="Progress Update",
        message=f'{ctx["actor"]} submitted a check-in for "{ctx["title"]}"',
        priority=NotificationPriority.medium,
    )


def _badge_earned(ctx: dict) -> NotificationMessage:
    return NotificationMessage(
        title="🏆 New Badge Earned!",
        message=f'Congratulations! You earned the "{ctx["name"]}" badge',
        priority=NotificationPriority.medium,
    )


def _team_assignment(ctx: dict) -> NotificationMessage:
    return NotificationMessage(
        title="Team Assignment",
        message=f'You have been added to team "{ctx["name"]}"',
        priority=NotificationPriority.high,
    )


def _deadline_approaching(ctx: dict) -> NotificationMessage:
    return NotificationMessage(
        title="⏰ Deadline Approaching",
        message=f"Quarter ends in {ctx['days_remaining']} days. Update your OKRs!",
        priority=NotificationPriority.urgent,
    )


_TEMPLATES: dict[NotificationActionType, Callable[[dict], NotificationMessage]] = {
    NotificationActionType.okr_created: _okr_created,
    NotificationActionType.okr_updated: _okr_updated,
    NotificationActionType.okr_deleted: _okr_deleted,
    NotificationActionType.checkin_submitted: _checkin_submitted,
    NotificationActionType.badge_earned: _badge_earned,
    NotificationActionType.team_assignment: _team_assignment,
    NotificationActionType.deadline_approaching: _deadline_approaching,
}


def _type_label(objective_type) -> str:
    return objective_type.value if isinstance(objective_type, ObjectiveType) else str(objective_type)


def render_message(
    action: Union[NotificationActionType, str],
    *,
    actor_name: Optional[str] = None,
    title: Optional[str] = None,
    objective_type: Optional[ObjectiveType] = None,
    name: Optional[str] = None,
    days_remaining: Optional[int] = None,
) -> NotificationMessage:
    """Render ``{title, message, priority}`` for *action*.

    ``title``/``objective_type`` describe the OKR for okr_* and
    checkin_submitted actions; ``name`` is the badge or team name;
    ``days_remaining`` feeds the deadline reminder.
    """
    try:
        action = NotificationActionType(action)
    except ValueError:
        return FALLBACK_MESSAGE

    template = _TEMPLATES.get(action)
    if template is None:
        return FALLBACK_MESSAGE

    return template({
        "actor": actor_name or DEFAULT_ACTOR_NAME,
        "title": title,
        "objective_type": objective_type,
        "name": name,
        "days_remaining": days_remaining,
    })


def action_url(
    related_model: Union[RelatedModel, str, None],
    related_id: Optional[uuid.UUID] = None,
) -> str:
    """Front-end route a notification links to."""
    try:
        model = RelatedModel(related_model)
    except ValueError:
        return "/"

    if model in (RelatedModel.objective, RelatedModel.key_result, RelatedModel.checkin):
        return f"/okr/{related_id}"
    if model == RelatedModel.badge:
        return "/profile"
    if model == RelatedModel.team:
        return "/teams"
    if model == RelatedModel.user:
        return "/users"
    return "/"
