"""Request and response schemas for the notification endpoints."""

from datetime import datetime

from pydantic import ConfigDict, Field, model_validator

from addiscare.models.common import CamelModel
from addiscare.models.enums import NotificationType, UserRole


class SenderRef(CamelModel):
    """Denormalized sender shown next to a notification."""

    id: str
    name: str
    avatar: str | None = None


class NotificationOut(CamelModel):
    """A notification as seen by one recipient."""

    id: str
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    created_at: datetime
    read: bool = False
    link: str | None = None
    sender: SenderRef | None = None
    report_id: str | None = None


class SentNotificationOut(NotificationOut):
    """A notification as seen by its sender, with delivery statistics."""

    is_broadcast: bool = False
    target_role: UserRole | None = None
    recipient_count: int = 0
    read_count: int = 0
    hidden_count: int = 0
    last_modified_at: datetime | None = None


class _NotificationBody(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    report_id: str | None = None
    type: NotificationType = NotificationType.INFO
    link: str | None = Field(None, max_length=500)


class NotificationCreate(_NotificationBody):
    """Direct notification to a single user."""

    recipient_id: str = Field(..., min_length=1)


class BulkNotificationCreate(_NotificationBody):
    """Notification fanned out to every user holding ``role``."""

    role: UserRole


class NotificationModify(CamelModel):
    """Edit of an already-sent notification; only title and message may change."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: str | None = Field(None, min_length=1, max_length=200)
    message: str | None = Field(None, min_length=1)

    @model_validator(mode="after")
    def _require_change(self):
        if self.title is None and self.message is None:
            raise ValueError("No valid updates provided")
        return self


class UnreadCount(CamelModel):
    count: int = Field(..., ge=0)


class MutationAck(CamelModel):
    """Acknowledgement for write endpoints."""

    success: bool = True
    count: int | None = None
    message: str | None = None


class ModifyAck(MutationAck):
    notification: SentNotificationOut
