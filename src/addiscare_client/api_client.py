"""Async HTTP client for the AddisCare notification API."""

from __future__ import annotations

import logging

import httpx

from addiscare_client.errors import (
    AuthenticationApiError,
    ConflictApiError,
    NotificationApiError,
    TransientApiError,
    ValidationApiError,
)
from addiscare_client.models import Notification, parse_notifications

logger = logging.getLogger(__name__)


def _error_from_response(r: httpx.Response) -> NotificationApiError:
    """Map a non-2xx response onto the client error taxonomy."""
    code, message, details = f"HTTP_{r.status_code}", r.reason_phrase or "Request failed", None
    try:
        body = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error") if isinstance(body.get("error"), dict) else body
        code = err.get("code", code)
        message = err.get("message") or err.get("msg") or message
        details = err.get("details")

    status = r.status_code
    if status == 401:
        cls = AuthenticationApiError
    elif status in (404, 409):
        cls = ConflictApiError
    elif status in (400, 422):
        cls = ValidationApiError
    elif status >= 500:
        cls = TransientApiError
    else:
        cls = NotificationApiError
    return cls(code, message, details, status_code=status)


class NotificationAPIClient:
    """Thin wrapper over ``httpx.AsyncClient``; one instance per session.

    Every method either returns parsed data or raises a
    :class:`~addiscare_client.errors.NotificationApiError` subclass.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000/api/v1",
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            r = await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransientApiError("TIMEOUT", f"{method} {path} timed out") from exc
        except httpx.TransportError as exc:
            raise TransientApiError("NETWORK_ERROR", f"{method} {path} failed: {exc}") from exc

        if r.is_success:
            return r
        error = _error_from_response(r)
        logger.debug("%s %s -> %d %s", method, path, r.status_code, error.code)
        raise error

    # --- Reads (Sync Engine only) ---

    async def list_notifications(
        self,
        limit: int = 20,
        cursor: str | None = None,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Newest-first page of the caller's notifications."""
        params: dict = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        if unread_only:
            params["unread_only"] = "true"
        r = await self._request("GET", "/notifications", params=params)
        return parse_notifications(r.json())

    async def get_unread_count(self) -> int:
        r = await self._request("GET", "/notifications/unread-count")
        return int(r.json().get("count", 0))

    async def list_sent(self) -> list[dict]:
        """Notifications the caller sent, with delivery statistics (raw JSON)."""
        r = await self._request("GET", "/notifications/sent")
        return r.json()

    # --- Mutations (Mutation Coordinator only) ---

    async def mark_read(self, notification_id: str) -> Notification | None:
        r = await self._request("PATCH", f"/notifications/{notification_id}/read")
        body = r.json()
        if isinstance(body, dict) and "id" in body:
            return Notification.model_validate(body)
        return None

    async def mark_all_read(self) -> int:
        """Returns how many notifications the server flipped to read."""
        r = await self._request("PATCH", "/notifications/mark-all-read")
        return int(r.json().get("count", 0))

    async def delete(self, notification_id: str) -> None:
        await self._request("DELETE", f"/notifications/{notification_id}")

    async def hide(self, notification_id: str) -> None:
        await self._request("PUT", f"/notifications/{notification_id}/hide")

    async def modify(self, notification_id: str, title: str | None = None, message: str | None = None) -> dict:
        body = {k: v for k, v in {"title": title, "message": message}.items() if v is not None}
        r = await self._request("PUT", f"/notifications/{notification_id}/modify", json=body)
        return r.json()

    async def send(
        self,
        title: str,
        message: str,
        recipient_id: str,
        report_id: str | None = None,
        type: str = "info",
        link: str | None = None,
    ) -> Notification:
        """Send a direct notification (admin only)."""
        body = {"title": title, "message": message, "recipientId": recipient_id, "type": type}
        if report_id:
            body["reportId"] = report_id
        if link:
            body["link"] = link
        r = await self._request("POST", "/notifications", json=body)
        return Notification.model_validate(r.json())

    async def send_bulk(
        self,
        title: str,
        message: str,
        role: str,
        report_id: str | None = None,
        type: str = "info",
        link: str | None = None,
    ) -> int:
        """Broadcast to every user with ``role`` (admin only). Returns the recipient count."""
        body = {"title": title, "message": message, "role": role, "type": type}
        if report_id:
            body["reportId"] = report_id
        if link:
            body["link"] = link
        r = await self._request("POST", "/notifications/bulk", json=body)
        return int(r.json().get("count", 0))
