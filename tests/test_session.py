"""NotificationSession end to end against the ASGI app."""

import asyncio

import httpx
import pytest

from addiscare.security import create_access_token
from addiscare_client.adapters import HeaderBadgeAdapter, NotificationsPageAdapter
from addiscare_client.config import ClientConfig
from addiscare_client.errors import InactiveSessionError
from addiscare_client.session import NotificationSession


def _session(app, clock, user_id="usr_rep1", role="reporter", **kwargs) -> NotificationSession:
    config = ClientConfig(api_url="http://test/api/v1")
    token = create_access_token(user_id, role)
    return NotificationSession(
        config, token, transport=httpx.ASGITransport(app=app), sleep=clock.sleep, **kwargs
    )


async def _broadcast(client, auth, title="Flood warning"):
    r = await client.post(
        "/api/v1/notifications/bulk",
        json={"title": title, "message": "Avoid the river crossing", "role": "reporter", "type": "alert"},
        headers=auth("usr_admin"),
    )
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_login_sync_mark_read_logout(app, client, auth, clock):
    await _broadcast(client, auth)

    session = _session(app, clock)
    session.login()
    badge = HeaderBadgeAdapter(session.store, session.coordinator)
    await session.coordinator.refresh()

    assert badge.badge_text == "1"
    nid = badge.view.items[0].id
    assert badge.view.items[0].sender.name == "Admin Abebe"

    result = await session.coordinator.mark_one_read(nid)
    assert result.ok
    assert badge.badge_text == ""

    # Read state is per recipient: the other reporter still sees it unread.
    r = await client.get("/api/v1/notifications/unread-count", headers=auth("usr_rep2"))
    assert r.json()["count"] == 1

    await session.logout()
    assert not session.is_active
    assert session.store.get_snapshot().items == ()
    assert not session.store.get_snapshot().has_synced
    await session.logout()


@pytest.mark.asyncio
async def test_context_manager_and_poll(app, client, auth, clock):
    async with _session(app, clock) as session:
        await session.coordinator.refresh()
        assert session.store.get_snapshot().unread_count == 0

        await _broadcast(client, auth, title="Water outage")
        await clock.advance(25)
        # The poll goes through the real ASGI stack and database threads.
        for _ in range(200):
            if session.store.get_snapshot().unread_count:
                break
            await asyncio.sleep(0.01)
        assert session.store.get_snapshot().items[0].title == "Water outage"

    assert not session.is_active
    with pytest.raises(InactiveSessionError):
        await session.coordinator.mark_all_read()


@pytest.mark.asyncio
async def test_hide_and_delete_through_page(app, client, auth, clock):
    await _broadcast(client, auth)
    async with _session(app, clock, user_id="usr_admin", role="admin") as admin:
        await admin.coordinator.refresh()
        sent = (await admin.api.list_sent())[0]

    async with _session(app, clock) as session:
        page = NotificationsPageAdapter(session.store, session.coordinator, confirm=lambda n, nid: True)
        await session.coordinator.refresh()
        assert [n.id for n in page.view.items] == [sent["id"]]

        # A reporter may hide but not delete.
        result = await page.delete(sent["id"])
        assert not result.ok
        assert result.error.status_code == 403
        assert [n.id for n in page.view.items] == [sent["id"]]

        result = await page.hide(sent["id"])
        assert result.ok
        assert page.view.items == ()

    r = await client.get("/api/v1/notifications", headers=auth("usr_rep2"))
    assert len(r.json()) == 1


@pytest.mark.asyncio
async def test_invalid_token_reported_to_session(app, users, clock):
    invalid = []
    config = ClientConfig(api_url="http://test/api/v1")
    session = NotificationSession(
        config,
        "expired-token",
        on_session_invalid=invalid.append,
        transport=httpx.ASGITransport(app=app),
        sleep=clock.sleep,
    )
    async with session:
        result = await session.coordinator.refresh()
        assert not result.ok
        await clock.advance(25)
        await session.coordinator.refresh()

    assert len(invalid) == 1
    assert invalid[0].status_code == 401
