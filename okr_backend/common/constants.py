"""Enums and constants for the OKR tracker — matching the stored string values."""

from __future__ import annotations

import enum


# ── Org / Roles ─────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    team_lead = "team_lead"
    member = "member"


# ── Objectives / Key Results ────────────────────────────────────────

class ObjectiveType(str, enum.Enum):
    company = "company"
    department = "department"
    team = "team"
    individual = "individual"


class ObjectiveStatus(str, enum.Enum):
    draft = "draft"
    active = "active"
    completed = "completed"
    archived = "archived"


class TimePeriod(str, enum.Enum):
    q1 = "Q1"
    q2 = "Q2"
    q3 = "Q3"
    q4 = "Q4"
    h1 = "H1"
    h2 = "H2"
    annual = "Annual"


class Confidence(str, enum.Enum):
    on_track = "on-track"
    at_risk = "at-risk"
    off_track = "off-track"


class MetricType(str, enum.Enum):
    number = "number"
    percentage = "percentage"
    currency = "currency"
    boolean = "boolean"


class KeyResultStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    archived = "archived"


# ── Notifications ───────────────────────────────────────────────────

class NotificationActionType(str, enum.Enum):
    okr_created = "okr_created"
    okr_updated = "okr_updated"
    okr_deleted = "okr_deleted"
    checkin_submitted = "checkin_submitted"
    deadline_approaching = "deadline_approaching"
    badge_earned = "badge_earned"
    team_assignment = "team_assignment"
    comment_added = "comment_added"
    mentioned = "mentioned"


class NotificationPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class RelatedModel(str, enum.Enum):
    objective = "Objective"
    key_result = "KeyResult"
    checkin = "CheckIn"
    badge = "Badge"
    team = "Team"
    user = "User"


# ── Badges ──────────────────────────────────────────────────────────
# Award rules live outside this service; only the catalogue is needed to
# render the badge-earned notification.

class BadgeType(str, enum.Enum):
    first_okr = "first-okr"
    streak_7 = "streak-7"
    streak_30 = "streak-30"
    achiever_100 = "achiever-100"
    team_player = "team-player"
    early_bird = "early-bird"
    perfectionist = "perfectionist"
    leader = "leader"
    consistent = "consistent"
    overachiever = "overachiever"


BADGE_DEFINITIONS: dict[BadgeType, dict[str, str]] = {
    BadgeType.first_okr: {
        "title": "First Steps",
        "description": "Created your first OKR",
        "icon": "🎯",
    },
    BadgeType.streak_7: {
        "title": "7-Day Streak",
        "description": "Checked in for 7 consecutive days",
        "icon": "🔥",
    },
    BadgeType.streak_30: {
        "title": "30-Day Streak",
        "description": "Checked in for 30 consecutive days",
        "icon": "⚡",
    },
    BadgeType.achiever_100: {
        "title": "Goal Achiever",
        "description": "Completed an OKR with 100% progress",
        "icon": "🏆",
    },
    # Criterion counts *owned* team objectives, same query as "leader".
    BadgeType.team_player: {
        "title": "Team Player",
        "description": "Aligned to 5+ team objectives",
        "icon": "🤝",
    },
    BadgeType.early_bird: {
        "title": "Early Bird",
        "description": "First check-in of the quarter",
        "icon": "🌅",
    },
    BadgeType.perfectionist: {
        "title": "Perfectionist",
        "description": "Completed 3 OKRs at 100%",
        "icon": "💎",
    },
    BadgeType.leader: {
        "title": "Leadership",
        "description": "Managed 10+ team OKRs",
        "icon": "👑",
    },
    BadgeType.consistent: {
        "title": "Consistency",
        "description": "Checked in every week for a quarter",
        "icon": "📅",
    },
    BadgeType.overachiever: {
        "title": "Overachiever",
        "description": "Completed 5 OKRs at 100%",
        "icon": "🌟",
    },
}


# ── Rollup thresholds ───────────────────────────────────────────────

ON_TRACK_MIN_PROGRESS = 70
AT_RISK_MIN_PROGRESS = 40
DEGENERATE_METRIC_PROGRESS = 100

# Weights used when averaging check-in confidence for user stats
CONFIDENCE_SCORES: dict[Confidence, int] = {
    Confidence.on_track: 3,
    Confidence.at_risk: 2,
    Confidence.off_track: 1,
}

# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
