"""Connection ownership and status transitions."""
import pytest

from sahayak.server.codec import MESSAGE, Envelope
from sahayak.server.connection import ConnectionManager
from sahayak.server.events import STATUS_CHANGED, EventBus
from sahayak.server.quiz_types import SessionStatus
from sahayak.server.session_state import SessionStateMachine

from .conftest import FakeWebSocket


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def manager(events):
    return ConnectionManager(SessionStateMachine(events))


# ---------- State machine ----------

def test_state_starts_waiting():
    assert SessionStateMachine().status == SessionStatus.WAITING


def test_disconnect_before_connect_is_rejected():
    sm = SessionStateMachine()
    assert sm.transition(SessionStatus.DISCONNECTED) is False
    assert sm.status == SessionStatus.WAITING


def test_status_events_only_on_change(events):
    seen = []
    events.subscribe(STATUS_CHANGED, seen.append)
    sm = SessionStateMachine(events)
    sm.transition(SessionStatus.CONNECTED)
    sm.transition(SessionStatus.CONNECTED)
    sm.transition(SessionStatus.DISCONNECTED)
    sm.transition(SessionStatus.CONNECTED)
    assert seen == [SessionStatus.CONNECTED, SessionStatus.DISCONNECTED, SessionStatus.CONNECTED]


def test_error_reachable_from_anywhere():
    for start in (SessionStatus.CONNECTED, SessionStatus.DISCONNECTED, SessionStatus.ERROR):
        sm = SessionStateMachine()
        sm.status = start
        assert sm.transition(SessionStatus.ERROR)


# ---------- Connection manager ----------

@pytest.mark.asyncio
async def test_send_without_connection_returns_false(manager):
    assert await manager.send(Envelope(MESSAGE, "hello")) is False


@pytest.mark.asyncio
async def test_send_after_disconnect_fails_then_reconnect_succeeds(manager):
    first = FakeWebSocket()
    await manager.accept(first)
    assert await manager.send(Envelope(MESSAGE, "one"))

    first.drop()
    manager.on_disconnect(first)
    assert manager.state.status == SessionStatus.DISCONNECTED
    assert await manager.send(Envelope(MESSAGE, "lost")) is False

    second = FakeWebSocket()
    await manager.accept(second)
    assert manager.state.status == SessionStatus.CONNECTED
    assert await manager.send(Envelope(MESSAGE, "two"))
    assert [m["data"] for m in first.sent] == ["one"]
    assert [m["data"] for m in second.sent] == ["two"]


@pytest.mark.asyncio
async def test_new_connection_replaces_old_one(manager):
    old, new = FakeWebSocket(), FakeWebSocket()
    await manager.accept(old)
    await manager.accept(new)

    assert old.closed
    assert manager.connection is new

    # the replaced socket's late disconnect must not touch the new connection
    assert manager.on_disconnect(old) is False
    assert manager.on_error(old, RuntimeError("late")) is False
    assert manager.state.status == SessionStatus.CONNECTED
    assert await manager.send(Envelope(MESSAGE, "still here"))
    assert new.sent[-1]["data"] == "still here"


@pytest.mark.asyncio
async def test_failed_send_is_reported_not_raised(manager):
    ws = FakeWebSocket(fail_send=True)
    await manager.accept(ws)
    assert await manager.send(Envelope(MESSAGE, "x")) is False
    assert await manager.broadcast(Envelope(MESSAGE, "x")) == 0


@pytest.mark.asyncio
async def test_transport_error_moves_to_error(manager):
    ws = FakeWebSocket()
    await manager.accept(ws)
    assert manager.on_error(ws, OSError("reset"))
    assert manager.state.status == SessionStatus.ERROR
    assert manager.connection is None


@pytest.mark.asyncio
async def test_close_closes_open_socket(manager):
    ws = FakeWebSocket()
    await manager.accept(ws)
    await manager.close()
    assert ws.closed
    assert manager.connection is None
