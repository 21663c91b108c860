"""Tests for state broadcast to subscribers."""

import pytest

from conftest import FakeSubscriber
from smartdisplay.core.broadcast import BroadcastFanout, state_message
from smartdisplay.core.state import Mode


@pytest.fixture
def fanout(store):
    return BroadcastFanout(store)


class TestConnections:
    """Test subscriber registration"""

    @pytest.mark.asyncio
    async def test_initial_state_on_connect(self, fanout, store):
        subscriber = FakeSubscriber()
        subscriber_id = await fanout.connect(subscriber)
        assert subscriber_id in fanout.active_connections
        assert subscriber.messages == [state_message(store.get())]
        assert subscriber.messages[0]["type"] == "state"

    @pytest.mark.asyncio
    async def test_explicit_id(self, fanout):
        assert await fanout.connect(FakeSubscriber(), "kiosk") == "kiosk"
        assert fanout.connection_count == 1

    @pytest.mark.asyncio
    async def test_disconnect_hook(self, store):
        gone = []

        async def on_disconnect(subscriber_id):
            gone.append(subscriber_id)

        fanout = BroadcastFanout(store, on_disconnect=on_disconnect)
        subscriber_id = await fanout.connect(FakeSubscriber())
        await fanout.disconnect(subscriber_id)
        await fanout.disconnect(subscriber_id)
        assert gone == [subscriber_id]
        assert fanout.connection_count == 0

    @pytest.mark.asyncio
    async def test_send_to_one(self, fanout):
        first, second = FakeSubscriber(), FakeSubscriber()
        first_id = await fanout.connect(first)
        await fanout.connect(second)
        await fanout.send_to(first_id, {"type": "error", "data": {"message": "x"}})
        assert len(first.messages) == 2
        assert len(second.messages) == 1

    @pytest.mark.asyncio
    async def test_is_display(self, fanout, store):
        subscriber_id = await fanout.connect(FakeSubscriber())
        store.register_display_subscriber(subscriber_id)
        assert fanout.is_display(subscriber_id)


class TestBroadcast:
    """Test snapshot delivery"""

    @pytest.mark.asyncio
    async def test_every_change_reaches_everyone(self, fanout, store):
        await fanout.start()
        subscribers = [FakeSubscriber(), FakeSubscriber()]
        for subscriber in subscribers:
            await fanout.connect(subscriber)

        store.set_mode(Mode.MUSIC)
        store.set_mode(Mode.AIRPLAY)
        await fanout.join()
        await fanout.stop()

        for subscriber in subscribers:
            modes = [m["data"]["currentMode"] for m in subscriber.messages]
            assert modes == ["ready", "music", "airplay"]

    @pytest.mark.asyncio
    async def test_dead_subscriber_removed(self, fanout, store):
        await fanout.start()
        healthy = FakeSubscriber()
        flaky = FakeSubscriber()
        await fanout.connect(healthy)
        flaky_id = await fanout.connect(flaky)
        flaky.fail = True

        store.set_sleeping(True)
        await fanout.join()
        assert flaky_id not in fanout.active_connections
        assert healthy.messages[-1]["data"]["isSleeping"] is True
        await fanout.stop()

    @pytest.mark.asyncio
    async def test_failed_initial_send(self, fanout):
        with pytest.raises(RuntimeError):
            await fanout.connect(FakeSubscriber(fail=True))
        assert fanout.connection_count == 0

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self, fanout, store):
        await fanout.start()
        subscriber = FakeSubscriber()
        await fanout.connect(subscriber)
        await fanout.stop()

        store.set_sleeping(True)
        assert fanout.connection_count == 0
        assert len(subscriber.messages) == 1

    @pytest.mark.asyncio
    async def test_restart(self, fanout, store):
        await fanout.start()
        await fanout.stop()
        await fanout.start()
        subscriber = FakeSubscriber()
        await fanout.connect(subscriber)
        store.set_sleeping(True)
        await fanout.join()
        await fanout.stop()
        assert len(subscriber.messages) == 2


@pytest.mark.asyncio
async def test_late_subscriber_never_sees_older_state(fanout, store):
    await fanout.start()
    early = FakeSubscriber()
    await fanout.connect(early)

    # Both snapshots are still queued when the late subscriber arrives
    store.set_mode(Mode.MUSIC)
    store.set_mode(Mode.AIRPLAY)
    late = FakeSubscriber()
    await fanout.connect(late)
    await fanout.join()
    await fanout.stop()

    assert [m["data"]["currentMode"] for m in early.messages] == ["ready", "music", "airplay"]
    assert [m["data"]["currentMode"] for m in late.messages] == ["airplay"]


@pytest.mark.asyncio
async def test_failed_initial_send_while_running(fanout):
    await fanout.start()
    with pytest.raises(RuntimeError):
        await fanout.connect(FakeSubscriber(fail=True))
    assert fanout.connection_count == 0
    await fanout.stop()
