"""Notification repository.

Every per-user query goes through :func:`_visible_to`: the user holds a
recipient row, has not hidden it, and is not the sender.
"""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from addiscare.db.base import utcnow
from addiscare.db.models.notification import NotificationRecipientRow, NotificationRow
from addiscare.repositories.base import BaseRepository

Receipt = tuple[NotificationRow, NotificationRecipientRow]


def _visible_to(user_id: str):
    return and_(
        NotificationRecipientRow.user_id == user_id,
        NotificationRecipientRow.hidden_at.is_(None),
        or_(NotificationRow.sender_id.is_(None), NotificationRow.sender_id != user_id),
    )


def _receipts():
    return select(NotificationRow, NotificationRecipientRow).join(
        NotificationRecipientRow,
        NotificationRecipientRow.notification_id == NotificationRow.notification_id,
    )


class NotificationRepository(BaseRepository[NotificationRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, NotificationRow)

    async def get(self, notification_id: str) -> NotificationRow | None:
        return await self.get_by_id("notification_id", notification_id)

    async def create_with_recipients(
        self,
        recipient_ids: Sequence[str],
        *,
        created_at: datetime | None = None,
        **fields,
    ) -> NotificationRow:
        """Insert a notification plus one unread recipient row per user."""
        if created_at is not None:
            fields["created_at"] = created_at
        row = await self.create(**fields)
        self.session.add_all(
            NotificationRecipientRow(notification_id=row.notification_id, user_id=uid)
            for uid in dict.fromkeys(recipient_ids)
        )
        await self.session.flush()
        await self.session.refresh(row, attribute_names=["sender"])
        return row

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 20,
        cursor: str | None = None,
        unread_only: bool = False,
    ) -> list[Receipt]:
        """Newest-first page of notifications visible to ``user_id``.

        ``cursor`` is the id of the last notification the caller already has;
        the page continues strictly after it. An unknown cursor yields an
        empty page.
        """
        stmt = _receipts().where(_visible_to(user_id))
        if unread_only:
            stmt = stmt.where(NotificationRecipientRow.read_at.is_(None))
        if cursor:
            anchor = await self.get(cursor)
            if anchor is None:
                return []
            stmt = stmt.where(
                or_(
                    NotificationRow.created_at < anchor.created_at,
                    and_(
                        NotificationRow.created_at == anchor.created_at,
                        NotificationRow.notification_id < anchor.notification_id,
                    ),
                )
            )
        stmt = stmt.order_by(
            NotificationRow.created_at.desc(), NotificationRow.notification_id.desc()
        ).limit(limit)
        result = await self.session.execute(stmt)
        return [(n, r) for n, r in result.all()]

    async def count_unread(self, user_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(NotificationRecipientRow)
            .join(
                NotificationRow,
                NotificationRow.notification_id == NotificationRecipientRow.notification_id,
            )
            .where(_visible_to(user_id), NotificationRecipientRow.read_at.is_(None))
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def get_receipt(self, notification_id: str, user_id: str) -> Receipt | None:
        stmt = _receipts().where(
            NotificationRow.notification_id == notification_id, _visible_to(user_id)
        )
        result = await self.session.execute(stmt)
        found = result.first()
        return (found[0], found[1]) if found else None

    async def mark_read(self, notification_id: str, user_id: str) -> Receipt | None:
        """Stamp ``read_at`` once; later calls keep the first timestamp."""
        receipt = await self.get_receipt(notification_id, user_id)
        if receipt is None:
            return None
        if receipt[1].read_at is None:
            receipt[1].read_at = utcnow()
            await self.session.flush()
        return receipt

    async def mark_all_read(self, user_id: str) -> int:
        own = select(NotificationRow.notification_id).where(NotificationRow.sender_id == user_id)
        stmt = (
            update(NotificationRecipientRow)
            .where(
                NotificationRecipientRow.user_id == user_id,
                NotificationRecipientRow.read_at.is_(None),
                NotificationRecipientRow.hidden_at.is_(None),
                NotificationRecipientRow.notification_id.not_in(own),
            )
            .values(read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def hide(self, notification_id: str, user_id: str) -> bool:
        """Soft-remove for one user. Hiding twice is a no-op success."""
        stmt = select(NotificationRecipientRow).where(
            NotificationRecipientRow.notification_id == notification_id,
            NotificationRecipientRow.user_id == user_id,
        )
        recipient = (await self.session.execute(stmt)).scalar_one_or_none()
        if recipient is None:
            return False
        if recipient.hidden_at is None:
            recipient.hidden_at = utcnow()
            await self.session.flush()
        return True

    async def delete(self, notification_id: str) -> bool:
        """Hard delete: the notification and every recipient row."""
        await self.session.execute(
            delete(NotificationRecipientRow).where(
                NotificationRecipientRow.notification_id == notification_id
            )
        )
        result = await self.session.execute(
            delete(NotificationRow).where(NotificationRow.notification_id == notification_id)
        )
        return (result.rowcount or 0) > 0

    async def list_sent(self, sender_id: str, limit: int = 100) -> list[tuple[NotificationRow, dict]]:
        """Notifications sent by ``sender_id`` with recipient/read/hidden tallies."""
        stmt = (
            select(NotificationRow)
            .where(NotificationRow.sender_id == sender_id)
            .order_by(NotificationRow.created_at.desc())
            .limit(limit)
        )
        rows = list((await self.session.execute(stmt)).scalars().all())
        if not rows:
            return []

        tally_stmt = (
            select(
                NotificationRecipientRow.notification_id,
                func.count(),
                func.count(NotificationRecipientRow.read_at),
                func.count(NotificationRecipientRow.hidden_at),
            )
            .where(NotificationRecipientRow.notification_id.in_([r.notification_id for r in rows]))
            .group_by(NotificationRecipientRow.notification_id)
        )
        tallies = {
            nid: {"recipient_count": total, "read_count": read, "hidden_count": hidden}
            for nid, total, read, hidden in (await self.session.execute(tally_stmt)).all()
        }
        empty = {"recipient_count": 0, "read_count": 0, "hidden_count": 0}
        return [(r, tallies.get(r.notification_id, empty)) for r in rows]

    async def tally(self, notification_id: str) -> dict:
        sent = await self.session.execute(
            select(
                func.count(),
                func.count(NotificationRecipientRow.read_at),
                func.count(NotificationRecipientRow.hidden_at),
            ).where(NotificationRecipientRow.notification_id == notification_id)
        )
        total, read, hidden = sent.one()
        return {"recipient_count": total, "read_count": read, "hidden_count": hidden}
