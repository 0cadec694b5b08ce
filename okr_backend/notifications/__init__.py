"""Notifications module — inbox, message templates and recipient fan-out."""

from okr_backend.notifications.models import Notification

__all__ = ["Notification"]
