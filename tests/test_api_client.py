"""NotificationAPIClient request shapes and error mapping (httpx.MockTransport)."""

import httpx
import pytest

from addiscare_client.api_client import NotificationAPIClient
from addiscare_client.errors import (
    AuthenticationApiError,
    ConflictApiError,
    NotificationApiError,
    TransientApiError,
    ValidationApiError,
)
from addiscare_client.models import NotificationType

WIRE_ITEM = {
    "_id": "ntf_1",
    "title": "Report Status Updated: RESOLVED",
    "message": "Your report has been resolved",
    "type": "success",
    "createdAt": "2026-03-01T12:00:00Z",
    "read": False,
    "link": "/reports/rep_1",
    "sender": {"_id": "usr_gov", "name": "Gov Hana"},
    "reportId": "rep_1",
}


def _client(handler) -> NotificationAPIClient:
    return NotificationAPIClient(
        "http://test/api/v1", token="tok", transport=httpx.MockTransport(handler)
    )


def _envelope(status: int, code: str, message: str, details=None) -> httpx.Response:
    error = {"code": code, "message": message, "trace_id": "trc_x", "timestamp": "2026-03-01T12:00:00Z"}
    if details is not None:
        error["details"] = details
    return httpx.Response(status, json={"error": error})


@pytest.mark.asyncio
async def test_list_sends_auth_and_parses_items():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["authorization"]
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[WIRE_ITEM])

    api = _client(handler)
    items = await api.list_notifications(limit=50, unread_only=True)
    await api.aclose()

    assert seen["auth"] == "Bearer tok"
    assert seen["path"] == "/api/v1/notifications"
    assert seen["params"] == {"limit": "50", "unread_only": "true"}
    assert items[0].id == "ntf_1"
    assert items[0].sender.id == "usr_gov"
    assert items[0].report_id == "rep_1"
    assert items[0].type is NotificationType.SUCCESS


@pytest.mark.asyncio
async def test_unknown_type_falls_back_to_info():
    api = _client(lambda r: httpx.Response(200, json=[{**WIRE_ITEM, "type": "celebration"}]))
    items = await api.list_notifications()
    assert items[0].type is NotificationType.INFO


@pytest.mark.asyncio
async def test_unread_count_and_mark_all_read():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("unread-count"):
            return httpx.Response(200, json={"count": 4})
        assert request.method == "PATCH"
        return httpx.Response(200, json={"success": True, "count": 4})

    api = _client(handler)
    assert await api.get_unread_count() == 4
    assert await api.mark_all_read() == 4


@pytest.mark.asyncio
async def test_send_uses_camel_case_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.read()
        return httpx.Response(201, json=WIRE_ITEM)

    api = _client(handler)
    created = await api.send("Hello", "World", "usr_rep1", report_id="rep_1")
    assert b'"recipientId":"usr_rep1"' in seen["body"].replace(b" ", b"")
    assert b'"reportId":"rep_1"' in seen["body"].replace(b" ", b"")
    assert created.id == "ntf_1"


@pytest.mark.parametrize(
    "status,exc_type",
    [
        (401, AuthenticationApiError),
        (404, ConflictApiError),
        (409, ConflictApiError),
        (400, ValidationApiError),
        (422, ValidationApiError),
        (500, TransientApiError),
        (503, TransientApiError),
        (403, NotificationApiError),
    ],
)
@pytest.mark.asyncio
async def test_status_mapping(status, exc_type):
    api = _client(lambda r: _envelope(status, "SOME_CODE", "nope"))
    with pytest.raises(exc_type) as info:
        await api.delete("ntf_1")
    assert info.value.status_code == status
    assert info.value.code == "SOME_CODE"
    assert info.value.message == "nope"


@pytest.mark.asyncio
async def test_validation_error_keeps_field_errors():
    api = _client(lambda r: _envelope(400, "VALIDATION_ERROR", "Request validation failed", {"title": "Too long"}))
    with pytest.raises(ValidationApiError) as info:
        await api.send_bulk("x" * 300, "m", "reporter")
    assert info.value.field_errors == {"title": "Too long"}


@pytest.mark.asyncio
async def test_non_json_error_body():
    api = _client(lambda r: httpx.Response(502, text="<html>Bad Gateway</html>"))
    with pytest.raises(TransientApiError) as info:
        await api.get_unread_count()
    assert info.value.code == "HTTP_502"


@pytest.mark.asyncio
async def test_connection_failure_is_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = _client(handler)
    with pytest.raises(TransientApiError) as info:
        await api.get_unread_count()
    assert info.value.code == "NETWORK_ERROR"


@pytest.mark.asyncio
async def test_timeout_is_transient():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    api = _client(handler)
    with pytest.raises(TransientApiError) as info:
        await api.hide("ntf_1")
    assert info.value.code == "TIMEOUT"


@pytest.mark.asyncio
async def test_modify_sends_only_given_fields():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = request.read()
        return httpx.Response(200, json={"success": True, "notification": {**WIRE_ITEM, "title": "New"}})

    api = _client(handler)
    body = await api.modify("ntf_1", title="New")
    assert seen["method"] == "PUT"
    assert seen["path"] == "/api/v1/notifications/ntf_1/modify"
    assert b"message" not in seen["body"]
    assert body["notification"]["title"] == "New"
