"""Tests for NotificationDispatcher and act_on_notification."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from conftest import info_notification, settle
from social_hub.core.exceptions import (
    InvalidTransition,
    NotAuthorized,
    RelationshipNotFound,
    StoreUnavailable,
)
from social_hub.schemas import (
    ActionOutcomeEnum,
    DispatcherStateEnum,
    FriendshipStatusEnum,
    SurfaceEnum,
)
from social_hub.services.notification_dispatcher import (
    NotificationDispatcher,
    SurfaceOptions,
    act_on_notification,
)


def make_dispatcher(notification_store, relationship_service, hub, surface=SurfaceEnum.PANEL, on_alert=None,
                    recipient_id="u2"):
    return NotificationDispatcher(
        recipient_id,
        notification_store,
        relationship_service,
        hub,
        options=SurfaceOptions.for_surface(surface),
        on_alert=on_alert,
    )


async def start(dispatcher):
    await dispatcher.mount()
    return asyncio.create_task(dispatcher.run())


async def stop(dispatcher, pump):
    await dispatcher.unmount()
    await asyncio.wait_for(pump, timeout=1)


def test_surface_options():
    panel = SurfaceOptions.for_surface(SurfaceEnum.PANEL)
    drawer = SurfaceOptions.for_surface(SurfaceEnum.DRAWER)

    assert (panel.limit, panel.window, panel.drop_on_act) == (20, None, False)
    assert (drawer.limit, drawer.window, drawer.drop_on_act) == (10, timedelta(hours=24), True)


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_mount_seeds_snapshot_and_unread(self, notification_store, relationship_service, hub):
        first = await notification_store.create(info_notification("u2"))
        second = await notification_store.create(info_notification("u2"))
        await notification_store.mark_read(first.id)
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)

        assert dispatcher.state == DispatcherStateEnum.UNINITIALIZED
        await dispatcher.mount()

        assert dispatcher.state == DispatcherStateEnum.LIVE
        assert [n.id for n in dispatcher.notifications] == [second.id, first.id]
        assert dispatcher.unread_count == 1
        assert hub.subscriber_count("u2") == 1
        await dispatcher.unmount()

    @pytest.mark.asyncio
    async def test_unmount_releases_and_is_idempotent(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)
        pump = await start(dispatcher)

        await stop(dispatcher, pump)
        await dispatcher.unmount()

        assert dispatcher.state == DispatcherStateEnum.SUSPENDED
        assert hub.subscriber_count("u2") == 0
        assert pump.done()

    @pytest.mark.asyncio
    async def test_no_events_applied_after_unmount(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)
        pump = await start(dispatcher)
        await stop(dispatcher, pump)

        row = await notification_store.create(info_notification("u2"))

        assert await dispatcher.apply(row) is False
        assert dispatcher.notifications == []

    @pytest.mark.asyncio
    async def test_context_manager_unmounts_on_error(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)

        with pytest.raises(RuntimeError):
            async with dispatcher:
                raise RuntimeError("surface torn down")

        assert dispatcher.state == DispatcherStateEnum.SUSPENDED
        assert hub.subscriber_count("u2") == 0

    @pytest.mark.asyncio
    async def test_failed_snapshot_releases_subscription(self, notification_store, relationship_service, hub):
        async def broken_list_recent(*args, **kwargs):
            raise StoreUnavailable()

        notification_store.list_recent = broken_list_recent
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)

        with pytest.raises(StoreUnavailable):
            await dispatcher.mount()

        assert dispatcher.state == DispatcherStateEnum.UNINITIALIZED
        assert hub.subscriber_count("u2") == 0

    @pytest.mark.asyncio
    async def test_remount_reseeds_from_store(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)
        await dispatcher.mount()
        await dispatcher.unmount()
        missed = await notification_store.create(info_notification("u2"))

        await dispatcher.mount()

        assert [n.id for n in dispatcher.notifications] == [missed.id]
        assert dispatcher.unread_count == 1
        await dispatcher.unmount()

    @pytest.mark.asyncio
    async def test_run_requires_mount(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)

        with pytest.raises(RuntimeError):
            await dispatcher.run()

    @pytest.mark.asyncio
    async def test_run_after_unmount_returns_quietly(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)
        await dispatcher.mount()
        # Pump scheduled but torn down before it first runs
        pump = asyncio.create_task(dispatcher.run())
        await dispatcher.unmount()

        assert await asyncio.wait_for(pump, timeout=1) is None
        assert dispatcher.state == DispatcherStateEnum.SUSPENDED


class TestApply:

    @pytest.mark.asyncio
    async def test_pushed_rows_are_prepended_and_counted(self, notification_store, relationship_service, hub):
        alerts = []

        async def on_alert(notification):
            alerts.append(notification.id)

        dispatcher = make_dispatcher(notification_store, relationship_service, hub, on_alert=on_alert)
        existing = await notification_store.create(info_notification("u2"))
        pump = await start(dispatcher)

        pushed = await notification_store.create(info_notification("u2"))
        await settle()

        assert [n.id for n in dispatcher.notifications] == [pushed.id, existing.id]
        assert dispatcher.unread_count == 2
        assert alerts == [pushed.id]
        await stop(dispatcher, pump)

    @pytest.mark.asyncio
    async def test_duplicate_delivery_is_ignored(self, notification_store, relationship_service, hub):
        alerts = []

        async def on_alert(notification):
            alerts.append(notification.id)

        dispatcher = make_dispatcher(notification_store, relationship_service, hub, on_alert=on_alert)
        await dispatcher.mount()
        row = await notification_store.create(info_notification("u2"))

        assert await dispatcher.apply(row) is True
        before = (dispatcher.notifications, dispatcher.unread_count)
        assert await dispatcher.apply(row) is False

        assert (dispatcher.notifications, dispatcher.unread_count) == before
        assert alerts == [row.id]
        await dispatcher.unmount()

    @pytest.mark.asyncio
    async def test_row_in_snapshot_and_push_applied_once(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)
        # Subscribe happens before the snapshot, so a row inserted in between
        # arrives both ways.
        row = await notification_store.create(info_notification("u2"))
        await dispatcher.mount()
        hub.dispatch(row)
        pump = asyncio.create_task(dispatcher.run())
        await settle()

        assert [n.id for n in dispatcher.notifications] == [row.id]
        assert dispatcher.unread_count == 1
        await stop(dispatcher, pump)

    @pytest.mark.asyncio
    async def test_other_recipients_ignored(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)
        await dispatcher.mount()
        row = await notification_store.create(info_notification("u3"))

        assert await dispatcher.apply(row) is False
        await dispatcher.unmount()

    @pytest.mark.asyncio
    async def test_drawer_caps_rows_and_keeps_dedup(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub, surface=SurfaceEnum.DRAWER)
        await dispatcher.mount()
        rows = [await notification_store.create(info_notification("u2", f"n{i}")) for i in range(12)]
        for row in rows:
            await dispatcher.apply(row)

        assert len(dispatcher.notifications) == 10
        assert dispatcher.notifications[0].id == rows[-1].id
        assert await dispatcher.apply(rows[0]) is False
        assert dispatcher.unread_count == 12
        await dispatcher.unmount()

    @pytest.mark.asyncio
    async def test_drawer_snapshot_skips_rows_outside_window(self, notification_store, relationship_service, hub):
        old = await notification_store.create(info_notification("u2", "old"))
        notification_store._rows[old.id].created_at = datetime.now(timezone.utc) - timedelta(hours=25)
        fresh = await notification_store.create(info_notification("u2", "fresh"))
        drawer = make_dispatcher(notification_store, relationship_service, hub, surface=SurfaceEnum.DRAWER)
        panel = make_dispatcher(notification_store, relationship_service, hub)

        await drawer.mount()
        await panel.mount()

        assert [n.id for n in drawer.notifications] == [fresh.id]
        assert {n.id for n in panel.notifications} == {old.id, fresh.id}
        await drawer.unmount()
        await panel.unmount()

    @pytest.mark.asyncio
    async def test_surfaces_keep_their_own_row_state(self, notification_store, relationship_service, hub):
        panel = make_dispatcher(notification_store, relationship_service, hub)
        drawer = make_dispatcher(notification_store, relationship_service, hub, surface=SurfaceEnum.DRAWER)
        panel_pump = await start(panel)
        drawer_pump = await start(drawer)
        await relationship_service.send_request("u1", "u2")
        await settle()
        [request] = panel.pending_actions()

        await panel.mark_read(request.id)

        assert panel.notifications[0].read is True
        assert drawer.notifications[0].read is False
        assert [n.id for n in drawer.pending_actions()] == [request.id]
        assert all(not n.read for n in drawer.pending_actions())
        await stop(panel, panel_pump)
        await stop(drawer, drawer_pump)

    @pytest.mark.asyncio
    async def test_row_between_snapshot_and_count_counted_once(self, notification_store, relationship_service, hub):
        list_recent = notification_store.list_recent

        async def list_then_insert(*args, **kwargs):
            rows = await list_recent(*args, **kwargs)
            await notification_store.create(info_notification("u2", "late"))
            return rows

        notification_store.list_recent = list_then_insert
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)
        pump = await start(dispatcher)
        await settle()

        assert len(dispatcher.notifications) == 1
        assert dispatcher.unread_count == await notification_store.unread_count("u2") == 1
        await stop(dispatcher, pump)


class TestReadState:

    @pytest.mark.asyncio
    async def test_mark_read_updates_row_and_counter(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)
        row = await notification_store.create(info_notification("u2"))
        await notification_store.create(info_notification("u2"))
        await dispatcher.mount()

        await dispatcher.mark_read(row.id)
        await dispatcher.mark_read(row.id)

        assert dispatcher.unread_count == 1
        assert next(n for n in dispatcher.notifications if n.id == row.id).read is True
        assert (await notification_store.get(row.id)).read is True
        await dispatcher.unmount()

    @pytest.mark.asyncio
    async def test_mark_read_rejects_foreign_rows(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)
        await dispatcher.mount()
        foreign = await notification_store.create(info_notification("u3"))

        with pytest.raises(NotAuthorized):
            await dispatcher.mark_read(foreign.id)
        assert (await notification_store.get(foreign.id)).read is False
        await dispatcher.unmount()

    @pytest.mark.asyncio
    async def test_mark_all_read(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)
        for _ in range(3):
            await notification_store.create(info_notification("u2"))
        await dispatcher.mount()

        assert await dispatcher.mark_all_read() == 3
        assert await dispatcher.mark_all_read() == 0
        assert dispatcher.unread_count == 0
        assert all(n.read for n in dispatcher.notifications)
        await dispatcher.unmount()


class TestActions:

    @pytest.mark.asyncio
    async def test_accept_from_panel(self, notification_store, relationship_service, friendship_store, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub)
        sent = await relationship_service.send_request("u1", "u2")
        await dispatcher.mount()
        [request] = dispatcher.pending_actions()

        result = await dispatcher.act(request.id, accept=True)

        assert result.outcome == ActionOutcomeEnum.APPLIED
        assert result.accepted is True
        assert (await friendship_store.get(sent.friendship.id)).status == FriendshipStatusEnum.ACCEPTED
        assert (await notification_store.get(request.id)).read is True
        assert dispatcher.pending_actions() == []
        assert dispatcher.unread_count == 0
        # Panel keeps the row, now read
        assert [n.id for n in dispatcher.notifications] == [request.id]
        await dispatcher.unmount()

    @pytest.mark.asyncio
    async def test_drawer_drops_row_after_acting(self, notification_store, relationship_service, hub):
        dispatcher = make_dispatcher(notification_store, relationship_service, hub, surface=SurfaceEnum.DRAWER)
        await relationship_service.send_request("u1", "u2")
        await dispatcher.mount()
        [request] = dispatcher.pending_actions()

        await dispatcher.act(request.id, accept=False)

        assert dispatcher.notifications == []
        assert await relationship_service.friend_ids("u2") == set()
        await dispatcher.unmount()

    @pytest.mark.asyncio
    async def test_two_surfaces_accepting_both_succeed(self, notification_store, relationship_service, hub):
        panel = make_dispatcher(notification_store, relationship_service, hub)
        drawer = make_dispatcher(notification_store, relationship_service, hub, surface=SurfaceEnum.DRAWER)
        panel_pump = await start(panel)
        drawer_pump = await start(drawer)

        await relationship_service.send_request("u1", "u2")
        await settle()
        [request] = panel.pending_actions()
        assert [n.id for n in drawer.pending_actions()] == [request.id]

        first = await panel.act(request.id, accept=True)
        second = await drawer.act(request.id, accept=True)

        assert first.outcome == ActionOutcomeEnum.APPLIED
        assert second.outcome == ActionOutcomeEnum.APPLIED
        assert await relationship_service.friend_ids("u2") == {"u1"}
        assert await notification_store.unread_count("u2") == 0
        await stop(panel, panel_pump)
        await stop(drawer, drawer_pump)

    @pytest.mark.asyncio
    async def test_conflicting_answer_from_second_surface_is_resolved(
        self, notification_store, relationship_service, hub
    ):
        panel = make_dispatcher(notification_store, relationship_service, hub)
        drawer = make_dispatcher(notification_store, relationship_service, hub, surface=SurfaceEnum.DRAWER)
        panel_pump = await start(panel)
        drawer_pump = await start(drawer)

        await relationship_service.send_request("u1", "u2")
        await settle()
        [request] = panel.pending_actions()

        await panel.act(request.id, accept=True)
        second = await drawer.act(request.id, accept=False)

        assert second.outcome == ActionOutcomeEnum.ALREADY_RESOLVED
        assert drawer.pending_actions() == []
        assert drawer.notifications == []
        # The first answer stands
        assert await relationship_service.friend_ids("u2") == {"u1"}
        await stop(panel, panel_pump)
        await stop(drawer, drawer_pump)

    @pytest.mark.asyncio
    async def test_withdrawn_request_retires_notification(self, notification_store, relationship_service, hub):
        panel = make_dispatcher(notification_store, relationship_service, hub)
        drawer = make_dispatcher(notification_store, relationship_service, hub, surface=SurfaceEnum.DRAWER)
        sent = await relationship_service.send_request("u1", "u2")
        await panel.mount()
        await drawer.mount()
        [request] = panel.pending_actions()
        await relationship_service.remove_friend(sent.friendship.id, "u1")

        with pytest.raises(RelationshipNotFound):
            await panel.act(request.id, accept=True)
        with pytest.raises(RelationshipNotFound):
            await drawer.act(request.id, accept=True)

        assert panel.pending_actions() == []
        assert panel.unread_count == 0
        assert [n.id for n in panel.notifications] == [request.id]
        assert drawer.notifications == []
        assert (await notification_store.get(request.id)).read is True
        await panel.unmount()
        await drawer.unmount()


class TestActOnNotification:

    @pytest.mark.asyncio
    async def test_requires_recipient(self, notification_store, relationship_service):
        await relationship_service.send_request("u1", "u2")
        [request] = await notification_store.list_recent("u2")

        with pytest.raises(NotAuthorized):
            await act_on_notification(request, "u3", True, notification_store, relationship_service)

    @pytest.mark.asyncio
    async def test_plain_notifications_have_no_action(self, notification_store, relationship_service):
        row = await notification_store.create(info_notification("u2"))

        with pytest.raises(InvalidTransition):
            await act_on_notification(row, "u2", True, notification_store, relationship_service)
        assert (await notification_store.get(row.id)).read is False
