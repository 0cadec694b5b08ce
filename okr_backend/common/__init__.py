"""Common module — shared utilities for the OKR tracker."""

from okr_backend.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    Confidence,
    NotificationActionType,
    NotificationPriority,
    ObjectiveType,
    RelatedModel,
    UserRole,
)
from okr_backend.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    RepositoryError,
    ValidationException,
    register_exception_handlers,
)
from okr_backend.common.pagination import PaginationMeta, PaginationParams

__all__ = [
    # Constants / Enums
    "Confidence",
    "NotificationActionType",
    "NotificationPriority",
    "ObjectiveType",
    "RelatedModel",
    "UserRole",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "NotFoundException",
    "RepositoryError",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginationMeta",
    "PaginationParams",
]
