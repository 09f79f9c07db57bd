"""Client-side notification model, parsed from the API's camelCase JSON."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class NotificationType(StrEnum):
    INFO = "info"
    ALERT = "alert"
    SUCCESS = "success"
    WARNING = "warning"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class SenderRef(_WireModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str = "System"
    avatar: str | None = None


class Notification(_WireModel):
    """One notification as the current user sees it. Immutable."""

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    created_at: datetime
    read: bool = False
    link: str | None = None
    sender: SenderRef | None = None
    report_id: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _unknown_type_is_info(cls, value):
        try:
            return NotificationType(value)
        except ValueError:
            return NotificationType.INFO

    def as_read(self) -> Notification:
        return self if self.read else self.model_copy(update={"read": True})


def parse_notifications(payload: list[dict]) -> list[Notification]:
    return [Notification.model_validate(item) for item in payload]
