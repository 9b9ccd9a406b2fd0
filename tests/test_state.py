import asyncio
from core import state
from core.models import AuthState, AuthStatus


def test_channel_starts_initializing():
    ch = state.StatusChannel()
    assert ch.current.state == AuthState.INITIALIZING
    assert ch.current.message == "Initializing..."


def test_publish_reaches_subscribers_in_order():
    async def scenario():
        ch = state.StatusChannel()
        q = ch.subscribe()
        ch.publish(state.ready())
        ch.publish(state.verifying())
        return [(await q.get()).state for _ in range(3)]

    assert asyncio.run(scenario()) == [AuthState.INITIALIZING, AuthState.READY, AuthState.VERIFYING]


def test_failed_is_terminal():
    ch = state.StatusChannel()
    assert ch.publish(state.failed("camera gone", state.CAMERA_DENIED_MESSAGE))
    assert ch.terminal
    assert not ch.publish(state.ready())
    assert ch.current.message == "Webcam access denied"
    assert ch.current.reason == "camera gone"


def test_slow_subscriber_drops_oldest():
    async def scenario():
        ch = state.StatusChannel()
        q = ch.subscribe()
        for i in range(state.SUBSCRIBER_QUEUE_SIZE + 5):
            ch.publish(AuthStatus(state=AuthState.READY, message=f"m{i}"))
        items = []
        while not q.empty():
            items.append(q.get_nowait().message)
        ch.unsubscribe(q)
        return items

    items = asyncio.run(scenario())
    assert len(items) == state.SUBSCRIBER_QUEUE_SIZE
    assert items[-1] == f"m{state.SUBSCRIBER_QUEUE_SIZE + 4}"
