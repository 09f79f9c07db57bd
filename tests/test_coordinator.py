"""MutationCoordinator: optimistic updates, rollback and resync."""

import asyncio

import pytest

from addiscare_client.coordinator import (
    MutationCoordinator,
    MutationKind,
    MutationState,
    PendingMutation,
)
from addiscare_client.errors import (
    ConflictApiError,
    InactiveSessionError,
    TransientApiError,
    UnconfirmedDeleteError,
    ValidationApiError,
)
from addiscare_client.store import MarkRead, NotificationStore
from addiscare_client.sync import SyncEngine
from helpers import settle


@pytest.mark.asyncio
async def test_mark_read_success_resyncs(coordinator, fake_api, store):
    result = await coordinator.mark_one_read("n1")
    assert result.ok
    assert result.state is MutationState.CONFIRMED
    assert fake_api.mutation_calls == [("mark_read", "n1")]
    assert store.get_snapshot().unread_count == 0
    assert coordinator.pending == ()


@pytest.mark.asyncio
async def test_failed_mark_read_rolls_back_to_server_state(coordinator, fake_api, store):
    counts = []
    store.subscribe(lambda snap: counts.append(snap.unread_count))
    fake_api.fail["mark_read"] = TransientApiError("HTTP_503", "Service unavailable", status_code=503)

    result = await coordinator.mark_one_read("n1")

    assert not result.ok
    assert result.state is MutationState.ROLLED_BACK
    assert result.error.status_code == 503
    assert counts[0] == 0
    snap = store.get_snapshot()
    assert snap.unread_count == 1
    assert snap.find("n1").read is False


@pytest.mark.asyncio
async def test_rollback_matches_fresh_snapshot(coordinator, fake_api, store):
    fake_api.fail["mark_read"] = TransientApiError("TIMEOUT", "timed out")
    await coordinator.mark_one_read("n1")

    fresh = NotificationStore()
    fresh.apply_server_snapshot(await fake_api.list_notifications(limit=50), await fake_api.get_unread_count())
    assert store.get_snapshot().items == fresh.get_snapshot().items
    assert store.get_snapshot().unread_count == fresh.get_snapshot().unread_count


@pytest.mark.asyncio
async def test_mark_read_skips_already_read(coordinator, fake_api):
    result = await coordinator.mark_one_read("n2")
    assert result.skipped and result.ok
    assert fake_api.mutation_calls == []


@pytest.mark.asyncio
async def test_mark_all_read_twice_sends_one_request(coordinator, fake_api, store):
    first = await coordinator.mark_all_read()
    second = await coordinator.mark_all_read()
    assert first.state is MutationState.CONFIRMED
    assert second.skipped
    assert fake_api.mutation_calls == [("mark_all_read",)]
    assert store.get_snapshot().unread_count == 0


@pytest.mark.asyncio
async def test_concurrent_mark_all_read_sends_one_request(coordinator, fake_api):
    await asyncio.gather(coordinator.mark_all_read(), coordinator.mark_all_read())
    assert fake_api.mutation_calls == [("mark_all_read",)]


@pytest.mark.asyncio
async def test_delete_requires_confirmation(coordinator, fake_api, store):
    with pytest.raises(UnconfirmedDeleteError):
        await coordinator.remove("n1")
    assert fake_api.mutation_calls == []
    assert store.get_snapshot().find("n1") is not None


@pytest.mark.asyncio
async def test_confirmed_delete(coordinator, fake_api, store):
    result = await coordinator.remove("n1", confirmed=True)
    assert result.ok
    assert result.kind is MutationKind.DELETE
    assert fake_api.mutation_calls == [("delete", "n1")]
    snap = store.get_snapshot()
    assert snap.find("n1") is None
    assert snap.unread_count == 0


@pytest.mark.asyncio
async def test_failed_delete_restores_item(coordinator, fake_api, store):
    fake_api.fail["delete"] = TransientApiError("NETWORK_ERROR", "offline")
    fake_api.fail["list_notifications"] = TransientApiError("NETWORK_ERROR", "offline")

    result = await coordinator.remove("n1", confirmed=True)

    assert result.state is MutationState.ROLLED_BACK
    snap = store.get_snapshot()
    assert [n.id for n in snap.items] == ["n1", "n2"]
    assert snap.unread_count == 1


@pytest.mark.asyncio
async def test_conflict_counts_as_done(coordinator, fake_api, store):
    fake_api.items = [n for n in fake_api.items if n.id != "n1"]
    fake_api.fail["delete"] = ConflictApiError("NOT_FOUND", "gone", status_code=404)

    result = await coordinator.remove("n1", confirmed=True)

    assert result.ok
    assert result.already_resolved
    assert store.get_snapshot().find("n1") is None


@pytest.mark.asyncio
async def test_hide_removes_locally(coordinator, fake_api, store):
    result = await coordinator.hide("n2")
    assert result.ok
    assert fake_api.mutation_calls == [("hide", "n2")]
    assert store.get_snapshot().find("n2") is None


@pytest.mark.asyncio
async def test_mutations_require_active_session(fake_api, clock):
    store = NotificationStore()
    engine = SyncEngine(store, fake_api, sleep=clock.sleep)
    coordinator = MutationCoordinator(store, fake_api, engine)
    with pytest.raises(InactiveSessionError):
        await coordinator.mark_all_read()
    with pytest.raises(InactiveSessionError):
        await coordinator.send("t", "m", "usr_rep1")
    assert fake_api.calls == []


@pytest.mark.asyncio
async def test_no_refresh_after_success_when_disabled(engine, fake_api):
    coordinator = MutationCoordinator(engine.store, fake_api, engine, refresh_after_mutation=False)
    fetches = engine.fetch_count
    await coordinator.mark_one_read("n1")
    assert engine.fetch_count == fetches


@pytest.mark.asyncio
async def test_send_returns_created(coordinator, fake_api):
    result = await coordinator.send("Road closed", "Use Ring Road", "usr_rep1")
    assert result.ok
    assert result.notification.title == "Road closed"


@pytest.mark.asyncio
async def test_send_validation_error_exposes_fields(coordinator, fake_api):
    fake_api.fail["send_bulk"] = ValidationApiError(
        "VALIDATION_ERROR", "Request validation failed", {"title": "String should have at least 1 character"}
    )
    result = await coordinator.send_bulk("", "m", "reporter")
    assert not result.ok
    assert result.field_errors == {"title": "String should have at least 1 character"}


def test_pending_mutation_transitions_once():
    store = NotificationStore()
    mutation = PendingMutation(MutationKind.MARK_READ, "x", store.apply_optimistic_patch(MarkRead("x")))
    mutation.confirm()
    with pytest.raises(RuntimeError):
        mutation.roll_back(TransientApiError("X", "late failure"))
    with pytest.raises(RuntimeError):
        mutation.confirm()
    assert mutation.state is MutationState.CONFIRMED


@pytest.mark.asyncio
async def test_mark_read_during_running_poll_stays_read(coordinator, engine, fake_api, store):
    fake_api.gate = asyncio.Event()
    poll = asyncio.create_task(coordinator.refresh())
    await settle()

    mutation = asyncio.create_task(coordinator.mark_one_read("n1"))
    await settle()
    fake_api.gate.set()

    result = await mutation
    assert (await poll).superseded
    assert result.ok
    snap = store.get_snapshot()
    assert snap.find("n1").read is True
    assert snap.unread_count == 0
    assert engine.fetch_count == 3


@pytest.mark.asyncio
async def test_open_panel_during_running_poll_keeps_count_at_zero(coordinator, fake_api, store):
    fake_api.gate = asyncio.Event()
    poll = asyncio.create_task(coordinator.refresh())
    await settle()

    mutation = asyncio.create_task(coordinator.mark_all_read())
    await settle()
    fake_api.gate.set()

    assert (await mutation).ok
    await poll
    assert store.get_snapshot().unread_count == 0
    assert all(n.read for n in store.get_snapshot().items)


@pytest.mark.asyncio
async def test_deactivate_during_follow_up_refresh(coordinator, engine, fake_api, store):
    fake_api.gate = asyncio.Event()
    mutation = asyncio.create_task(coordinator.mark_one_read("n1"))
    await settle()

    await engine.deactivate()
    fake_api.gate.set()

    result = await mutation
    assert result.ok
    assert result.state is MutationState.CONFIRMED
    assert fake_api.mutation_calls == [("mark_read", "n1")]
