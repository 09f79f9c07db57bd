"""Notification creation and serialization.

Report workflows call :func:`send_status_update_notification` and
:func:`send_comment_notification`; the admin endpoints call
:func:`send_notification` and :func:`send_bulk_notification`.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from addiscare.db.models.notification import NotificationRecipientRow, NotificationRow
from addiscare.errors.exceptions import NotFoundError, ValidationError
from addiscare.models.enums import NotificationType, ReportStatus, UserRole
from addiscare.models.notification import NotificationOut, SenderRef, SentNotificationOut
from addiscare.repositories.notification_repo import NotificationRepository
from addiscare.repositories.user_repo import UserRepository
from addiscare.services.id_generator import generate_id

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    ReportStatus.PENDING: "Your report is pending review",
    ReportStatus.IN_PROGRESS: "Your report is now being processed",
    ReportStatus.RESOLVED: "Your report has been resolved",
    ReportStatus.REJECTED: "Your report has been rejected",
}

STATUS_TYPES = {
    ReportStatus.RESOLVED: NotificationType.SUCCESS,
    ReportStatus.REJECTED: NotificationType.WARNING,
}

COMMENT_PREVIEW_LENGTH = 50


def _sender_ref(row: NotificationRow) -> SenderRef | None:
    if row.sender is None:
        return None
    return SenderRef(id=row.sender.user_id, name=row.sender.name, avatar=row.sender.avatar)


def to_recipient_view(row: NotificationRow, recipient: NotificationRecipientRow | None = None) -> NotificationOut:
    """Render ``row`` for one recipient; ``read`` is that recipient's flag.

    Without a recipient row (just created) the notification is unread.
    """
    return NotificationOut(
        id=row.notification_id,
        title=row.title,
        message=row.message,
        type=row.type,
        created_at=row.created_at,
        read=recipient is not None and recipient.read_at is not None,
        link=row.link,
        sender=_sender_ref(row),
        report_id=row.report_id,
    )


def to_sender_view(row: NotificationRow, tally: dict) -> SentNotificationOut:
    return SentNotificationOut(
        id=row.notification_id,
        title=row.title,
        message=row.message,
        type=row.type,
        created_at=row.created_at,
        read=tally["recipient_count"] > 0 and tally["read_count"] == tally["recipient_count"],
        link=row.link,
        sender=_sender_ref(row),
        report_id=row.report_id,
        is_broadcast=row.is_broadcast,
        target_role=row.target_role,
        last_modified_at=row.last_modified_at,
        **tally,
    )


async def send_notification(
    session: AsyncSession,
    *,
    recipient_id: str,
    sender_id: str | None,
    title: str,
    message: str,
    report_id: str | None = None,
    type: str = NotificationType.INFO,
    link: str | None = None,
) -> NotificationRow:
    """Create a direct notification for one user."""
    recipient = await UserRepository(session).get(recipient_id)
    if recipient is None:
        raise NotFoundError("User", recipient_id)

    repo = NotificationRepository(session)
    row = await repo.create_with_recipients(
        [recipient_id],
        notification_id=generate_id("ntf_"),
        title=title,
        message=message,
        type=str(type),
        link=link,
        sender_id=sender_id,
        report_id=report_id,
        is_broadcast=False,
    )
    logger.info(
        "Notification %s sent to %s (sender=%s)", row.notification_id, recipient_id, sender_id
    )
    return row


async def send_bulk_notification(
    session: AsyncSession,
    *,
    role: str,
    sender_id: str,
    title: str,
    message: str,
    report_id: str | None = None,
    type: str = NotificationType.INFO,
    link: str | None = None,
) -> tuple[NotificationRow, int]:
    """Fan one notification out to every user with ``role`` except the sender.

    Returns the notification row and the number of recipients.
    """
    try:
        role = UserRole(role)
    except ValueError as exc:
        raise ValidationError("Invalid role", {"role": f"Role must be one of {[r.value for r in UserRole]}"}) from exc

    users = await UserRepository(session).list_by_role(role)
    recipient_ids = [u.user_id for u in users if u.user_id != sender_id]
    if not recipient_ids:
        raise NotFoundError("Users with role", role)

    row = await NotificationRepository(session).create_with_recipients(
        recipient_ids,
        notification_id=generate_id("ntf_"),
        title=title,
        message=message,
        type=str(type),
        link=link,
        sender_id=sender_id,
        report_id=report_id,
        is_broadcast=True,
        target_role=role,
    )
    logger.info(
        "Broadcast %s sent to %d %s users (sender=%s)",
        row.notification_id, len(recipient_ids), role, sender_id,
    )
    return row, len(recipient_ids)


async def send_status_update_notification(
    session: AsyncSession,
    *,
    report_id: str,
    reporter_id: str,
    status: str,
    updated_by_id: str,
) -> NotificationRow:
    """Tell a reporter that their report moved to ``status``."""
    try:
        known = ReportStatus(status)
    except ValueError:
        known = None
    label = status.replace("_", " ").upper()
    return await send_notification(
        session,
        recipient_id=reporter_id,
        sender_id=updated_by_id,
        title=f"Report Status Updated: {label}",
        message=STATUS_MESSAGES.get(known, f"Your report status has been updated to: {status}"),
        report_id=report_id,
        type=STATUS_TYPES.get(known, NotificationType.INFO),
        link=f"/reports/{report_id}",
    )


async def send_comment_notification(
    session: AsyncSession,
    *,
    report_id: str,
    reporter_id: str,
    commenter_id: str,
    comment_text: str,
) -> NotificationRow:
    """Tell a reporter someone commented on their report."""
    preview = comment_text
    if len(preview) > COMMENT_PREVIEW_LENGTH:
        preview = f"{preview[:COMMENT_PREVIEW_LENGTH]}..."
    return await send_notification(
        session,
        recipient_id=reporter_id,
        sender_id=commenter_id,
        title="New Comment on Your Report",
        message=f'New comment: "{preview}"',
        report_id=report_id,
        link=f"/reports/{report_id}",
    )
