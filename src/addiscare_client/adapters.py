"""Presentation adapters: thin views over the shared Store.

Adapters hold no notification arrays of their own and make no HTTP calls.
They read the Store, derive a :class:`NotificationView`, and forward user
actions to the :class:`~addiscare_client.coordinator.MutationCoordinator`.
A UI layer subclasses an adapter and overrides :meth:`NotificationAdapter.render`.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from addiscare_client.coordinator import MutationCoordinator, MutationResult, SendResult
from addiscare_client.errors import NotificationApiError
from addiscare_client.models import Notification
from addiscare_client.store import NotificationStore, StoreSnapshot
from addiscare_client.sync import SyncResult

BADGE_MAX = 99
DROPDOWN_SIZE = 5


class ViewState(StrEnum):
    LOADING = "loading"
    ERROR = "error"
    NORMAL = "normal"


@dataclass(frozen=True)
class NotificationView:
    state: ViewState
    items: tuple[Notification, ...]
    unread_count: int
    is_refreshing: bool = False
    banner: str | None = None


Confirm = Callable[[Notification | None, str], bool | Awaitable[bool]]


class NotificationAdapter:
    """Base adapter: subscribes on creation, unsubscribes on :meth:`close`."""

    def __init__(self, store: NotificationStore, coordinator: MutationCoordinator) -> None:
        self.store = store
        self.coordinator = coordinator
        self._dismissed: NotificationApiError | None = None
        self._mutation_error: NotificationApiError | None = None
        self.view = self._build_view(store.get_snapshot())
        self._unsubscribe = store.subscribe(self._on_change)

    def render(self, view: NotificationView) -> None:
        """Hook for the UI layer; called after every Store change."""

    def close(self) -> None:
        self._unsubscribe()

    async def refresh(self) -> SyncResult:
        return await self.coordinator.refresh()

    def _on_change(self, snapshot: StoreSnapshot) -> None:
        self._rerender(snapshot)

    def _rerender(self, snapshot: StoreSnapshot | None = None) -> None:
        self.view = self._build_view(snapshot or self.store.get_snapshot())
        self.render(self.view)

    def _build_view(self, snapshot: StoreSnapshot) -> NotificationView:
        fetch_error = snapshot.last_error
        if fetch_error is not None and fetch_error is self._dismissed:
            fetch_error = None

        if fetch_error is not None:
            state = ViewState.ERROR
        elif not snapshot.has_synced:
            state = ViewState.LOADING
        else:
            state = ViewState.NORMAL

        shown = fetch_error or self._mutation_error
        return NotificationView(
            state=state,
            items=self._select_items(snapshot),
            unread_count=snapshot.unread_count,
            is_refreshing=snapshot.is_loading,
            banner=shown.message if shown is not None else None,
        )

    def _select_items(self, snapshot: StoreSnapshot) -> tuple[Notification, ...]:
        return snapshot.items

    def _record(self, result: MutationResult) -> MutationResult:
        self._mutation_error = result.error
        self._rerender()
        return result


class HeaderBadgeAdapter(NotificationAdapter):
    """Bell icon with unread badge and a short dropdown.

    Opening the dropdown marks everything read. The guard keeps repeated
    opens from sending more requests while one is running or nothing is
    unread.
    """

    def __init__(
        self,
        store: NotificationStore,
        coordinator: MutationCoordinator,
        dropdown_size: int = DROPDOWN_SIZE,
    ) -> None:
        self.dropdown_size = dropdown_size
        self.is_open = False
        self._marking = False
        super().__init__(store, coordinator)

    @property
    def badge_text(self) -> str:
        count = self.view.unread_count
        if count <= 0:
            return ""
        return f"{BADGE_MAX}+" if count > BADGE_MAX else str(count)

    def _select_items(self, snapshot: StoreSnapshot) -> tuple[Notification, ...]:
        return snapshot.items[: self.dropdown_size]

    async def open_panel(self) -> MutationResult | None:
        self.is_open = True
        self._rerender()
        if self._marking or self.store.get_snapshot().unread_count == 0:
            return None
        self._marking = True
        try:
            return self._record(await self.coordinator.mark_all_read())
        finally:
            self._marking = False

    def close_panel(self) -> None:
        self.is_open = False
        self._rerender()

    async def select(self, notification_id: str) -> str | None:
        """Click on an item: mark it read and return its deep link."""
        notification = self.store.get_snapshot().find(notification_id)
        self._record(await self.coordinator.mark_one_read(notification_id))
        return notification.link if notification is not None else None


class NotificationsPageAdapter(NotificationAdapter):
    """Full notifications page with delete, hide and a retry banner.

    ``confirm(notification, notification_id)`` is asked before every hard
    delete; a falsy answer stops the delete before any request.
    """

    def __init__(
        self,
        store: NotificationStore,
        coordinator: MutationCoordinator,
        confirm: Confirm,
        unread_only: bool = False,
    ) -> None:
        self._confirm = confirm
        self.unread_only = unread_only
        super().__init__(store, coordinator)

    def _select_items(self, snapshot: StoreSnapshot) -> tuple[Notification, ...]:
        if self.unread_only:
            return tuple(n for n in snapshot.items if not n.read)
        return snapshot.items

    def set_filter(self, unread_only: bool) -> None:
        self.unread_only = unread_only
        self._rerender()

    async def mark_read(self, notification_id: str) -> MutationResult:
        return self._record(await self.coordinator.mark_one_read(notification_id))

    async def mark_all_read(self) -> MutationResult:
        return self._record(await self.coordinator.mark_all_read())

    async def delete(self, notification_id: str) -> MutationResult | None:
        """Ask, then hard-delete. Returns None when the user declines."""
        notification = self.store.get_snapshot().find(notification_id)
        answer = self._confirm(notification, notification_id)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            return None
        return self._record(await self.coordinator.remove(notification_id, confirmed=True))

    async def hide(self, notification_id: str) -> MutationResult:
        return self._record(await self.coordinator.hide(notification_id))

    async def retry(self) -> SyncResult:
        self._dismissed = None
        self._mutation_error = None
        return await self.refresh()

    def dismiss_error(self) -> None:
        """Hide the banner until a different error arrives."""
        self._dismissed = self.store.get_snapshot().last_error
        self._mutation_error = None
        self._rerender()


class ComposeAdapter:
    """Admin form for direct and role-wide notifications.

    Server field errors are kept exactly as returned so the form can show
    them next to the matching inputs.
    """

    def __init__(self, coordinator: MutationCoordinator) -> None:
        self.coordinator = coordinator
        self.field_errors: dict[str, str] = {}
        self.error_message: str | None = None
        self.last_result: SendResult | None = None

    async def send_to_user(self, title: str, message: str, recipient_id: str, **kwargs) -> SendResult:
        return self._record(await self.coordinator.send(title, message, recipient_id, **kwargs))

    async def broadcast_to_role(self, title: str, message: str, role: str, **kwargs) -> SendResult:
        return self._record(await self.coordinator.send_bulk(title, message, role, **kwargs))

    def _record(self, result: SendResult) -> SendResult:
        self.last_result = result
        self.field_errors = dict(result.field_errors)
        self.error_message = result.error.message if result.error is not None else None
        return result
