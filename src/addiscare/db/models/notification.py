"""Notification storage tables.

One ``notifications`` row per logical message; one
``notification_recipients`` row per addressed user. Read and hide state live
on the recipient row only, so a broadcast read by one user stays unread for
everybody else.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from addiscare.db.base import Base, TimestampMixin
from addiscare.db.models.user import UserRow


class NotificationRow(Base, TimestampMixin):
    __tablename__ = "notifications"

    notification_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="info")
    link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sender_id: Mapped[str | None] = mapped_column(
        String(128), ForeignKey("users.user_id"), nullable=True, index=True
    )
    report_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    is_broadcast: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    target_role: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Edit tracking
    original_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    original_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_modified_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_modified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    sender: Mapped[UserRow | None] = relationship(lazy="joined")


class NotificationRecipientRow(Base):
    __tablename__ = "notification_recipients"

    notification_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("notifications.notification_id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.user_id"), primary_key=True, index=True
    )
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    hidden_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
