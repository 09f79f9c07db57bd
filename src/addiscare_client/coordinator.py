"""Mutation Coordinator: optimistic local change, server request, rollback.

Each call runs the same three steps:

1. patch the Store so every surface updates at once;
2. send the request;
3. on success confirm (and re-sync); on failure revert what can be
   reverted locally and re-sync so the server's state wins.

404/409 on a mutation means the server already holds the state the user
asked for (the notification is gone or already read), so it is confirmed
silently.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

from addiscare_client.errors import (
    ConflictApiError,
    InactiveSessionError,
    NotificationApiError,
    UnconfirmedDeleteError,
    ValidationApiError,
)
from addiscare_client.models import Notification
from addiscare_client.store import MarkAllRead, MarkRead, NotificationStore, Patch, Remove, UndoToken
from addiscare_client.sync import SyncEngine, SyncResult

logger = logging.getLogger(__name__)


class MutationKind(StrEnum):
    MARK_READ = "mark_read"
    MARK_ALL_READ = "mark_all_read"
    DELETE = "delete"
    HIDE = "hide"


class MutationState(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class PendingMutation:
    """One optimistic change waiting on the server: ``pending -> confirmed | rolled_back``."""

    kind: MutationKind
    target_id: str | None
    token: UndoToken
    state: MutationState = MutationState.PENDING
    error: NotificationApiError | None = None

    def confirm(self) -> None:
        self._transition(MutationState.CONFIRMED)

    def roll_back(self, error: NotificationApiError) -> None:
        self._transition(MutationState.ROLLED_BACK)
        self.error = error

    def _transition(self, new_state: MutationState) -> None:
        if self.state is not MutationState.PENDING:
            raise RuntimeError(f"{self.kind} mutation already {self.state}; cannot move to {new_state}")
        self.state = new_state


@dataclass(frozen=True)
class MutationResult:
    kind: MutationKind
    state: MutationState | None
    error: NotificationApiError | None = None
    skipped: bool = False
    already_resolved: bool = False

    @property
    def ok(self) -> bool:
        return self.skipped or self.state is MutationState.CONFIRMED


@dataclass(frozen=True)
class SendResult:
    ok: bool
    notification: Notification | None = None
    count: int | None = None
    error: NotificationApiError | None = None
    field_errors: dict[str, str] = field(default_factory=dict)


class MutationCoordinator:
    """The only path from a user action to a notification write request."""

    def __init__(
        self,
        store: NotificationStore,
        api,
        engine: SyncEngine,
        *,
        refresh_after_mutation: bool = True,
    ) -> None:
        self.store = store
        self.api = api
        self.engine = engine
        self.refresh_after_mutation = refresh_after_mutation
        self._pending: list[PendingMutation] = []

    @property
    def pending(self) -> tuple[PendingMutation, ...]:
        return tuple(self._pending)

    def _ensure_active(self) -> None:
        if not self.engine.is_active:
            raise InactiveSessionError("Notification session is not active; log in first")

    # --- Read state ---

    async def mark_one_read(self, notification_id: str) -> MutationResult:
        self._ensure_active()
        known = self.store.get_snapshot().find(notification_id)
        if known is not None and known.read:
            return MutationResult(MutationKind.MARK_READ, None, skipped=True)
        return await self._mutate(
            MutationKind.MARK_READ,
            notification_id,
            MarkRead(notification_id),
            lambda: self.api.mark_read(notification_id),
        )

    async def mark_all_read(self) -> MutationResult:
        """No request is sent while the unread count is already zero."""
        self._ensure_active()
        if self.store.get_snapshot().unread_count == 0:
            return MutationResult(MutationKind.MARK_ALL_READ, None, skipped=True)
        return await self._mutate(
            MutationKind.MARK_ALL_READ, None, MarkAllRead(), self.api.mark_all_read
        )

    # --- Removal ---

    async def remove(self, notification_id: str, *, confirmed: bool = False) -> MutationResult:
        """Hard delete. Callers must have asked the user first and pass ``confirmed=True``."""
        self._ensure_active()
        if not confirmed:
            raise UnconfirmedDeleteError(f"Delete of {notification_id} was not confirmed")
        return await self._mutate(
            MutationKind.DELETE,
            notification_id,
            Remove(notification_id),
            lambda: self.api.delete(notification_id),
        )

    async def hide(self, notification_id: str) -> MutationResult:
        """Per-user soft removal; other recipients still see the notification."""
        self._ensure_active()
        return await self._mutate(
            MutationKind.HIDE,
            notification_id,
            Remove(notification_id),
            lambda: self.api.hide(notification_id),
        )

    async def refresh(self) -> SyncResult:
        self._ensure_active()
        return await self.engine.refresh()

    # --- Admin sends (no optimistic state, never retried) ---

    async def send(
        self,
        title: str,
        message: str,
        recipient_id: str,
        report_id: str | None = None,
        type: str = "info",
        link: str | None = None,
    ) -> SendResult:
        self._ensure_active()
        try:
            created = await self.api.send(title, message, recipient_id, report_id=report_id, type=type, link=link)
        except NotificationApiError as exc:
            return _failed_send(exc)
        logger.info("Sent notification %s to %s", created.id, recipient_id)
        return SendResult(ok=True, notification=created)

    async def send_bulk(
        self,
        title: str,
        message: str,
        role: str,
        report_id: str | None = None,
        type: str = "info",
        link: str | None = None,
    ) -> SendResult:
        self._ensure_active()
        try:
            count = await self.api.send_bulk(title, message, role, report_id=report_id, type=type, link=link)
        except NotificationApiError as exc:
            return _failed_send(exc)
        logger.info("Broadcast to role %s reached %d users", role, count)
        return SendResult(ok=True, count=count)

    # --- Core ---

    async def _mutate(
        self,
        kind: MutationKind,
        target_id: str | None,
        patch: Patch,
        call: Callable[[], Awaitable[object]],
    ) -> MutationResult:
        mutation = PendingMutation(kind, target_id, self.store.apply_optimistic_patch(patch))
        self._pending.append(mutation)
        failure: NotificationApiError | None = None
        self.engine.begin_mutation()
        try:
            await call()
        except NotificationApiError as exc:
            failure = exc
        finally:
            self.engine.end_mutation()
            self._pending.remove(mutation)

        if isinstance(failure, ConflictApiError):
            mutation.confirm()
            logger.info("%s on %s already resolved server-side (%s)", kind, target_id, failure.code)
            await self.engine.refresh()
            return MutationResult(kind, mutation.state, already_resolved=True)
        if failure is not None:
            self.store.revert(mutation.token)
            mutation.roll_back(failure)
            logger.warning("%s on %s failed: %s; resyncing", kind, target_id, failure.message)
            await self.engine.refresh()
            return MutationResult(kind, mutation.state, error=failure)

        mutation.confirm()
        if self.refresh_after_mutation:
            await self.engine.refresh()
        return MutationResult(kind, mutation.state)


def _failed_send(exc: NotificationApiError) -> SendResult:
    fields = exc.field_errors if isinstance(exc, ValidationApiError) else {}
    logger.warning("Notification send rejected: %s (%s)", exc.message, exc.code)
    return SendResult(ok=False, error=exc, field_errors=fields)
