"""Client-side test doubles: fake API, manual clock and notification factory."""

import asyncio
from datetime import datetime, timedelta, timezone

from addiscare_client.models import Notification

_READS = {"get_unread_count", "list_notifications"}


class FakeNotificationApi:
    """In-memory stand-in for NotificationAPIClient, holding one user's server state.

    ``fail[name] = error`` makes the named call raise until removed.
    ``gate`` (an asyncio.Event) blocks reads until set; a gated read still
    returns the state captured when it was issued.
    """

    def __init__(self, items=()):
        self.items = list(items)
        self.calls: list[tuple] = []
        self.fail: dict = {}
        self.gate = None

    def unread(self) -> int:
        return sum(1 for n in self.items if not n.read)

    @property
    def mutation_calls(self) -> list[tuple]:
        return [c for c in self.calls if c[0] not in _READS]

    async def _enter(self, name: str, *args):
        self.calls.append((name, *args))
        if name in _READS and self.gate is not None:
            await self.gate.wait()
        if name in self.fail:
            raise self.fail[name]

    # Reads answer with the server state as it was when the request was sent.

    async def get_unread_count(self) -> int:
        count = self.unread()
        await self._enter("get_unread_count")
        return count

    async def list_notifications(self, limit=20, cursor=None, unread_only=False):
        items = list(self.items[:limit])
        await self._enter("list_notifications", limit)
        return items

    async def mark_read(self, notification_id):
        await self._enter("mark_read", notification_id)
        self.items = [n.as_read() if n.id == notification_id else n for n in self.items]

    async def mark_all_read(self) -> int:
        await self._enter("mark_all_read")
        count = self.unread()
        self.items = [n.as_read() for n in self.items]
        return count

    async def delete(self, notification_id):
        await self._enter("delete", notification_id)
        self.items = [n for n in self.items if n.id != notification_id]

    async def hide(self, notification_id):
        await self._enter("hide", notification_id)
        self.items = [n for n in self.items if n.id != notification_id]

    async def send(self, title, message, recipient_id, **kwargs):
        await self._enter("send", recipient_id)
        return make_notification("ntf_sent", title=title, message=message)

    async def send_bulk(self, title, message, role, **kwargs):
        await self._enter("send_bulk", role)
        return 3


class FakeClock:
    """Manual clock: ``sleep`` only returns when the test advances time."""

    def __init__(self):
        self.now = 0.0
        self._sleepers: list[tuple[float, asyncio.Future]] = []

    async def sleep(self, seconds: float) -> None:
        fut = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + seconds, fut))
        await fut

    async def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [(t, f) for t, f in self._sleepers if t <= self.now]
        for entry in due:
            self._sleepers.remove(entry)
            if not entry[1].done():
                entry[1].set_result(None)
        await settle()


async def settle(rounds: int = 20) -> None:
    """Let every ready task run to its next real wait."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_notification(nid: str, read: bool = False, minutes_ago: int = 0, **fields) -> Notification:
    created = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago)
    data = {
        "id": nid,
        "title": f"Notification {nid}",
        "message": "Body",
        "createdAt": created.isoformat(),
        "read": read,
        "sender": {"id": "usr_admin", "name": "Admin Abebe"},
        **fields,
    }
    return Notification.model_validate(data)


