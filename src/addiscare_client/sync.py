"""Sync Engine: polls the API and reconciles the Notification Store.

The engine is the only reader of notification data from the network. One
engine per session; adapters never poll on their own.

Lifecycle::

    engine.activate()      # immediate fetch, then one poll every interval
    await engine.refresh() # on demand; coalesces with an in-flight fetch
    await engine.deactivate()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from addiscare_client.errors import AuthenticationApiError, NotificationApiError, TransientApiError
from addiscare_client.store import NotificationStore

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 25.0
MAX_PAGE_LIMIT = 100

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class SyncResult:
    ok: bool
    error: NotificationApiError | None = None
    coalesced: bool = False
    # The fetch succeeded but a local mutation overlapped it, so the
    # Store kept its newer optimistic state.
    superseded: bool = False


class SyncEngine:
    """Fetch-then-reconcile loop for one :class:`NotificationStore`.

    ``api`` needs ``get_unread_count()`` and ``list_notifications(limit=)``.
    ``sleep`` is injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        store: NotificationStore,
        api,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        page_limit: int | None = None,
        sleep: Sleep = asyncio.sleep,
        on_unauthorized: Callable[[AuthenticationApiError], None] | None = None,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.store = store
        self.api = api
        self.poll_interval = poll_interval
        self.page_limit = page_limit or min(store.retention_cap, MAX_PAGE_LIMIT)
        self._sleep = sleep
        self._on_unauthorized = on_unauthorized

        self._poll_task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None
        self._inflight_seq = 0
        # Bumped on every activate/deactivate; fetches from an older
        # generation are discarded instead of applied.
        self._generation = 0
        # Bumped when a mutation starts and when it settles. A snapshot whose
        # fetch saw a different value may predate the server-side change.
        self._mutation_seq = 0
        self._mutations_in_flight = 0
        self._unauthorized_reported = False
        self.fetch_count = 0

    @property
    def is_active(self) -> bool:
        return self._poll_task is not None

    def activate(self) -> None:
        """Start polling. The first fetch runs immediately. No-op if already active."""
        if self._poll_task is not None:
            return
        self._generation += 1
        self._unauthorized_reported = False
        self._poll_task = asyncio.create_task(self._run(self._generation), name="notification-poll")
        logger.info("Notification polling started (interval=%ss)", self.poll_interval)

    async def deactivate(self) -> None:
        """Cancel polling and drop any in-flight fetch. Safe to call twice."""
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        self._generation += 1
        task.cancel()
        inflight, self._inflight = self._inflight, None
        if inflight is not None and not inflight.done():
            inflight.cancel()
        for t in (task, inflight):
            if t is None:
                continue
            try:
                await t
            except asyncio.CancelledError:
                pass
        logger.info("Notification polling stopped")

    def begin_mutation(self) -> None:
        """Called by the coordinator before a mutation request is sent."""
        self._mutation_seq += 1
        self._mutations_in_flight += 1

    def end_mutation(self) -> None:
        """Called once the mutation request has settled, successfully or not."""
        self._mutation_seq += 1
        self._mutations_in_flight -= 1

    async def refresh(self) -> SyncResult:
        """Fetch now.

        A call made while another fetch is running shares its result, unless
        that fetch started before the latest mutation; then it waits for the
        running fetch to finish and starts a new one.
        """
        while True:
            if self._poll_task is None:
                return SyncResult(ok=False, error=TransientApiError("INACTIVE", "Sync engine is not active"))
            task = self._inflight
            if task is None or task.done():
                break
            if self._inflight_seq == self._mutation_seq:
                result = await self._wait(task)
                return SyncResult(
                    ok=result.ok, error=result.error, coalesced=True, superseded=result.superseded
                )
            await self._wait(task)

        self._inflight_seq = self._mutation_seq
        self._inflight = asyncio.create_task(
            self._fetch_and_reconcile(self._generation, self._mutation_seq)
        )
        return await self._wait(self._inflight)

    async def _wait(self, task: asyncio.Task) -> SyncResult:
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # deactivate() cancelled the fetch, not this caller.
            current = asyncio.current_task()
            if task.cancelled() and not (current is not None and current.cancelling()):
                return SyncResult(ok=False, error=TransientApiError("STALE", "Session changed during fetch"))
            raise

    async def _run(self, generation: int) -> None:
        try:
            while True:
                try:
                    await self.refresh()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("Notification poll failed unexpectedly")
                await self._sleep(self.poll_interval)
        except asyncio.CancelledError:
            pass
        finally:
            if self._generation == generation and self._poll_task is asyncio.current_task():
                self._poll_task = None

    async def _fetch_and_reconcile(self, generation: int, mutation_seq: int) -> SyncResult:
        self.fetch_count += 1
        self.store.set_loading(True)
        try:
            count, items = await asyncio.gather(
                self.api.get_unread_count(),
                self.api.list_notifications(limit=self.page_limit),
                return_exceptions=True,
            )
        except asyncio.CancelledError:
            self.store.set_loading(False)
            raise

        if generation != self._generation:
            logger.debug("Discarding fetch from a stale session generation")
            return SyncResult(ok=False, error=TransientApiError("STALE", "Session changed during fetch"))

        error = next((r for r in (count, items) if isinstance(r, BaseException)), None)
        if error is None:
            if mutation_seq != self._mutation_seq or self._mutations_in_flight:
                logger.debug("Discarding snapshot that overlapped a local mutation")
                self.store.set_loading(False)
                return SyncResult(ok=True, superseded=True)
            self.store.apply_server_snapshot(items, count)
            return SyncResult(ok=True)

        if not isinstance(error, NotificationApiError):
            if not isinstance(error, Exception):
                raise error
            logger.exception("Unexpected error while fetching notifications", exc_info=error)
            error = TransientApiError("CLIENT_ERROR", str(error))

        self.store.set_error(error)
        if isinstance(error, AuthenticationApiError):
            self._report_unauthorized(error)
        else:
            logger.warning("Notification sync failed: %s (%s)", error.message, error.code)
        return SyncResult(ok=False, error=error)

    def _report_unauthorized(self, error: AuthenticationApiError) -> None:
        if self._unauthorized_reported:
            return
        self._unauthorized_reported = True
        logger.warning("Notification sync rejected with 401; escalating to session")
        if self._on_unauthorized is not None:
            self._on_unauthorized(error)
