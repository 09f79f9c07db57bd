"""String enums shared by the API schemas and ORM rows."""

from enum import StrEnum


class NotificationType(StrEnum):
    INFO = "info"
    ALERT = "alert"
    SUCCESS = "success"
    WARNING = "warning"


class UserRole(StrEnum):
    REPORTER = "reporter"
    GOVERNMENT = "government"
    ADMIN = "admin"


class ReportStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    REJECTED = "rejected"
