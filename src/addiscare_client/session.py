"""Session wiring: one store, one sync engine and one coordinator per login."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import httpx

from addiscare_client.api_client import NotificationAPIClient
from addiscare_client.config import ClientConfig
from addiscare_client.coordinator import MutationCoordinator
from addiscare_client.errors import AuthenticationApiError
from addiscare_client.store import NotificationStore
from addiscare_client.sync import Sleep, SyncEngine

logger = logging.getLogger(__name__)


class NotificationSession:
    """Owns the notification pipeline for one authenticated user.

    ``login()`` starts polling; ``logout()`` stops it, drops every cached
    notification and closes the HTTP client. A 401 from a sync is passed to
    ``on_session_invalid`` once; the callback decides whether to log out.

    Usable as an async context manager::

        async with NotificationSession(config, token) as session:
            badge = HeaderBadgeAdapter(session.store, session.coordinator)
    """

    def __init__(
        self,
        config: ClientConfig,
        token: str,
        on_session_invalid: Callable[[AuthenticationApiError], None] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config
        self.api = NotificationAPIClient(
            base_url=config.api_url,
            token=token,
            timeout=config.timeout,
            transport=transport,
        )
        self.store = NotificationStore(retention_cap=config.retention_cap)
        self.engine = SyncEngine(
            self.store,
            self.api,
            poll_interval=config.poll_interval,
            page_limit=config.page_limit,
            sleep=sleep,
            on_unauthorized=on_session_invalid,
        )
        self.coordinator = MutationCoordinator(
            self.store,
            self.api,
            self.engine,
            refresh_after_mutation=config.refresh_after_mutation,
        )
        self._closed = False

    @property
    def is_active(self) -> bool:
        return self.engine.is_active

    def login(self) -> None:
        if self._closed:
            raise RuntimeError("Notification session already logged out")
        self.engine.activate()

    async def logout(self) -> None:
        """Stop syncing and discard all cached notifications. Runs once."""
        if self._closed:
            return
        self._closed = True
        await self.engine.deactivate()
        self.store.clear()
        await self.api.aclose()
        logger.info("Notification session closed")

    async def __aenter__(self) -> NotificationSession:
        self.login()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.logout()
