"""Notification Store: the one in-memory copy of the user's notifications.

Writers:

* the Sync Engine, through :meth:`NotificationStore.apply_server_snapshot`
  (total replacement, server wins);
* the Mutation Coordinator, through
  :meth:`NotificationStore.apply_optimistic_patch` immediately before it
  issues the matching request.

Everything else only reads (:meth:`get_snapshot`) or listens
(:meth:`subscribe`). All methods are synchronous, so each change is atomic
within one event-loop turn.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from addiscare_client.errors import NotificationApiError
from addiscare_client.models import Notification

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_CAP = 50


# --- Optimistic patches ---


@dataclass(frozen=True)
class MarkRead:
    notification_id: str


@dataclass(frozen=True)
class MarkAllRead:
    pass


@dataclass(frozen=True)
class Remove:
    """Drop an item locally (used for both delete and hide)."""

    notification_id: str


Patch = MarkRead | MarkAllRead | Remove


@dataclass
class UndoToken:
    """Handle returned by :meth:`NotificationStore.apply_optimistic_patch`.

    ``epoch`` ties the token to the server snapshot it was applied on top
    of; once a newer snapshot lands the token can no longer change state.
    """

    patch: Patch
    epoch: int
    unread_delta: int = 0
    removed: Notification | None = None
    index: int | None = None
    reverted: bool = False


# --- Snapshot ---


@dataclass(frozen=True)
class StoreSnapshot:
    items: tuple[Notification, ...] = ()
    unread_count: int = 0
    is_loading: bool = False
    last_error: NotificationApiError | None = None
    synced_at: datetime | None = None

    @property
    def has_synced(self) -> bool:
        return self.synced_at is not None

    def find(self, notification_id: str) -> Notification | None:
        return next((n for n in self.items if n.id == notification_id), None)


Listener = Callable[[StoreSnapshot], None]


@dataclass
class _Subscription:
    listener: Listener
    active: bool = field(default=True)


class NotificationStore:
    """Observable snapshot of items plus the server's unread count.

    ``unread_count`` comes from the server and may include notifications
    beyond the retained page; patches adjust it locally until the next sync.
    It never goes below zero.
    """

    def __init__(self, retention_cap: int = DEFAULT_RETENTION_CAP) -> None:
        if retention_cap < 1:
            raise ValueError("retention_cap must be >= 1")
        self.retention_cap = retention_cap
        self._state = StoreSnapshot()
        self._subscriptions: list[_Subscription] = []
        self._epoch = 0

    @property
    def epoch(self) -> int:
        """Bumped by every server snapshot and by :meth:`clear`."""
        return self._epoch

    # --- Reads ---

    def get_snapshot(self) -> StoreSnapshot:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(snapshot)`` after every change. Returns an idempotent unsubscribe."""
        sub = _Subscription(listener)
        self._subscriptions.append(sub)

        def unsubscribe() -> None:
            if sub.active:
                sub.active = False
                self._subscriptions.remove(sub)

        return unsubscribe

    # --- Writes ---

    def apply_server_snapshot(self, items: Iterable[Notification], unread_count: int) -> None:
        """Replace items and count wholesale; every pending patch is superseded."""
        self._epoch += 1
        self._commit(
            items=tuple(items)[: self.retention_cap],
            unread_count=max(0, int(unread_count)),
            is_loading=False,
            last_error=None,
            synced_at=datetime.now(timezone.utc),
        )

    def apply_optimistic_patch(self, patch: Patch) -> UndoToken:
        state = self._state
        count = state.unread_count

        if isinstance(patch, MarkRead):
            token = UndoToken(patch, self._epoch)
            idx = _index_of(state.items, patch.notification_id)
            if idx is not None and not state.items[idx].read:
                items = list(state.items)
                items[idx] = items[idx].as_read()
                new_count = max(0, count - 1)
                token.unread_delta = count - new_count
                self._commit(items=tuple(items), unread_count=new_count)
            return token

        if isinstance(patch, MarkAllRead):
            token = UndoToken(patch, self._epoch, unread_delta=count)
            self._commit(items=tuple(n.as_read() for n in state.items), unread_count=0)
            return token

        if isinstance(patch, Remove):
            token = UndoToken(patch, self._epoch)
            idx = _index_of(state.items, patch.notification_id)
            if idx is not None:
                removed = state.items[idx]
                new_count = count if removed.read else max(0, count - 1)
                token.removed, token.index = removed, idx
                token.unread_delta = count - new_count
                self._commit(items=state.items[:idx] + state.items[idx + 1:], unread_count=new_count)
            return token

        raise TypeError(f"Unsupported patch: {patch!r}")

    def revert(self, token: UndoToken) -> bool:
        """Undo a ``Remove`` patch that no server snapshot has superseded.

        Read patches are never reverted here: read state only moves back to
        unread through :meth:`apply_server_snapshot`. Returns whether the
        state changed.
        """
        if token.reverted or token.epoch != self._epoch:
            return False
        token.reverted = True
        if not isinstance(token.patch, Remove) or token.removed is None:
            return False

        items = list(self._state.items)
        if _index_of(items, token.removed.id) is not None:
            return False
        items.insert(min(token.index or 0, len(items)), token.removed)
        self._commit(
            items=tuple(items[: self.retention_cap]),
            unread_count=self._state.unread_count + token.unread_delta,
        )
        return True

    def set_loading(self, loading: bool) -> None:
        if self._state.is_loading != loading:
            self._commit(is_loading=loading)

    def set_error(self, error: NotificationApiError | None) -> None:
        """Surface a fetch error; items stay as they were (stale but visible)."""
        self._commit(last_error=error, is_loading=False)

    def clear(self) -> None:
        """Reset to the empty, never-synced state (logout)."""
        self._epoch += 1
        self._commit(items=(), unread_count=0, is_loading=False, last_error=None, synced_at=None)

    def _commit(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        snapshot = self._state
        for sub in list(self._subscriptions):
            if not sub.active:
                continue
            try:
                sub.listener(snapshot)
            except Exception:
                logger.exception("Notification store listener %r failed", sub.listener)


def _index_of(items, notification_id: str) -> int | None:
    for i, n in enumerate(items):
        if n.id == notification_id:
            return i
    return None
