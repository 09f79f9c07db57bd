"""Notification endpoints: per-user listing, read state, hide/delete, admin send."""

import logging

from fastapi import APIRouter, Query, status

from addiscare.config import settings
from addiscare.db.base import utcnow
from addiscare.dependencies import AdminUser, CurrentUser, DBSession
from addiscare.errors.exceptions import AuthorizationError, NotFoundError
from addiscare.models.enums import UserRole
from addiscare.models.notification import (
    BulkNotificationCreate,
    ModifyAck,
    MutationAck,
    NotificationCreate,
    NotificationModify,
    NotificationOut,
    SentNotificationOut,
    UnreadCount,
)
from addiscare.repositories.notification_repo import NotificationRepository
from addiscare.services.notification_service import (
    send_bulk_notification,
    send_notification,
    to_recipient_view,
    to_sender_view,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])

_MODIFY_ROLES = {UserRole.ADMIN, UserRole.GOVERNMENT}


@router.get("", response_model=list[NotificationOut])
async def list_notifications(
    user: CurrentUser,
    db: DBSession,
    limit: int = Query(settings.notification_page_default, ge=1, le=settings.notification_page_max),
    cursor: str | None = None,
    unread_only: bool = False,
) -> list[NotificationOut]:
    """Newest-first page of the caller's notifications."""
    repo = NotificationRepository(db)
    receipts = await repo.list_for_user(user["sub"], limit=limit, cursor=cursor, unread_only=unread_only)
    return [to_recipient_view(row, recipient) for row, recipient in receipts]


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(user: CurrentUser, db: DBSession) -> UnreadCount:
    return UnreadCount(count=await NotificationRepository(db).count_unread(user["sub"]))


@router.get("/sent", response_model=list[SentNotificationOut])
async def list_sent(user: CurrentUser, db: DBSession) -> list[SentNotificationOut]:
    """Notifications the caller has sent, with delivery statistics."""
    sent = await NotificationRepository(db).list_sent(user["sub"])
    return [to_sender_view(row, tally) for row, tally in sent]


@router.patch("/mark-all-read", response_model=MutationAck, response_model_exclude_none=True)
async def mark_all_read(user: CurrentUser, db: DBSession) -> MutationAck:
    count = await NotificationRepository(db).mark_all_read(user["sub"])
    await db.commit()
    logger.info("Marked %d notifications read for %s", count, user["sub"])
    return MutationAck(count=count, message=f"Marked {count} notifications as read")


@router.patch("/{notification_id}/read", response_model=NotificationOut)
@router.put("/{notification_id}/read", response_model=NotificationOut, include_in_schema=False)
async def mark_read(notification_id: str, user: CurrentUser, db: DBSession) -> NotificationOut:
    receipt = await NotificationRepository(db).mark_read(notification_id, user["sub"])
    if receipt is None:
        raise NotFoundError("Notification", notification_id)
    await db.commit()
    return to_recipient_view(*receipt)


@router.put("/{notification_id}/hide", response_model=MutationAck, response_model_exclude_none=True)
async def hide_notification(notification_id: str, user: CurrentUser, db: DBSession) -> MutationAck:
    """Hide for the caller only; other recipients are unaffected."""
    if not await NotificationRepository(db).hide(notification_id, user["sub"]):
        raise NotFoundError("Notification", notification_id)
    await db.commit()
    return MutationAck(message="Notification hidden successfully")


@router.delete("/{notification_id}", response_model=MutationAck, response_model_exclude_none=True)
async def delete_notification(notification_id: str, user: CurrentUser, db: DBSession) -> MutationAck:
    """Permanent removal for every recipient. Sender or admin only."""
    repo = NotificationRepository(db)
    row = await repo.get(notification_id)
    if row is None:
        raise NotFoundError("Notification", notification_id)
    if user.get("role") != UserRole.ADMIN and row.sender_id != user["sub"]:
        raise AuthorizationError("Not authorized to delete this notification")

    await repo.delete(notification_id)
    await db.commit()
    logger.info("Notification %s deleted by %s", notification_id, user["sub"])
    return MutationAck(message="Notification permanently deleted")


@router.put("/{notification_id}/modify", response_model=ModifyAck)
async def modify_notification(
    notification_id: str,
    body: NotificationModify,
    user: CurrentUser,
    db: DBSession,
) -> ModifyAck:
    """Edit title/message. The first edit keeps the original text."""
    repo = NotificationRepository(db)
    row = await repo.get(notification_id)
    if row is None:
        raise NotFoundError("Notification", notification_id)
    if user.get("role") not in _MODIFY_ROLES and row.sender_id != user["sub"]:
        raise AuthorizationError("Not authorized to modify this notification")

    if body.title is not None:
        if row.original_title is None:
            row.original_title = row.title
        row.title = body.title
    if body.message is not None:
        if row.original_message is None:
            row.original_message = row.message
        row.message = body.message
    row.last_modified_by = user["sub"]
    row.last_modified_at = utcnow()
    await db.flush()
    tally = await repo.tally(notification_id)
    await db.commit()
    return ModifyAck(message="Notification modified successfully", notification=to_sender_view(row, tally))


@router.post("", response_model=NotificationOut, status_code=status.HTTP_201_CREATED)
async def create_notification(body: NotificationCreate, user: AdminUser, db: DBSession) -> NotificationOut:
    row = await send_notification(
        db,
        recipient_id=body.recipient_id,
        sender_id=user["sub"],
        title=body.title,
        message=body.message,
        report_id=body.report_id,
        type=body.type,
        link=body.link,
    )
    await db.commit()
    return to_recipient_view(row)


@router.post(
    "/bulk",
    response_model=MutationAck,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_bulk_notification(body: BulkNotificationCreate, user: AdminUser, db: DBSession) -> MutationAck:
    _, count = await send_bulk_notification(
        db,
        role=body.role,
        sender_id=user["sub"],
        title=body.title,
        message=body.message,
        report_id=body.report_id,
        type=body.type,
        link=body.link,
    )
    await db.commit()
    return MutationAck(count=count)
