"""Org module — users, departments and teams."""

from okr_backend.org.models import Department, Team, User, user_departments, user_teams

__all__ = ["User", "Department", "Team", "user_departments", "user_teams"]
