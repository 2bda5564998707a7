import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from supportdesk.realtime import ADMIN_CHANNEL, ChannelRegistry, email_channel, register_handlers


@pytest.fixture
def server():
    mock = MagicMock()
    mock.emit = AsyncMock()
    mock.enter_room = AsyncMock()
    mock.leave_room = AsyncMock()
    return mock


def test_join_and_leave_use_server_rooms(server):
    registry = ChannelRegistry(server)

    asyncio.run(registry.join("s1", "a@x.com"))
    asyncio.run(registry.join("s2", "a@x.com"))
    asyncio.run(registry.leave("s2", "a@x.com"))

    assert server.enter_room.await_args_list[0].args == ("s1", "a@x.com")
    assert server.enter_room.await_args_list[1].args == ("s2", "a@x.com")
    server.leave_room.assert_awaited_once_with("s2", "a@x.com")


def test_join_ignores_blank_channel(server):
    registry = ChannelRegistry(server)

    asyncio.run(registry.join("s1", ""))

    server.enter_room.assert_not_awaited()


def test_emit_is_one_room_broadcast(server):
    registry = ChannelRegistry(server)
    asyncio.run(registry.join("s1", "a@x.com"))
    asyncio.run(registry.join("s2", "a@x.com"))

    assert asyncio.run(registry.emit("a@x.com", "notification", {"n": 1})) is True

    # every member is reached by the single room emit
    server.emit.assert_awaited_once_with("notification", {"n": 1}, room="a@x.com")


def test_emit_without_server_is_a_no_op():
    assert asyncio.run(ChannelRegistry().emit("a@x.com", "notification", {})) is False


def test_channels_of_hides_the_session_room(server):
    server.rooms.return_value = ["s1", "a@x.com", ADMIN_CHANNEL]

    assert ChannelRegistry(server).channels_of("s1") == ["a@x.com", ADMIN_CHANNEL]


def test_email_channel_normalises():
    assert email_channel("  A@X.com ") == "a@x.com"
    assert email_channel(None) == ""


def test_socket_handlers_join_and_leave_rooms(server):
    handlers = {}
    sio = MagicMock()
    sio.event = lambda fn: handlers.setdefault(fn.__name__, fn)
    sio.on = lambda name: (lambda fn: handlers.setdefault(name, fn))
    register_handlers(sio, ChannelRegistry(server))

    asyncio.run(handlers["join"]("s1", "A@x.com"))
    asyncio.run(handlers["joinAdmin"]("s1"))
    asyncio.run(handlers["leave"]("s1", "a@x.com"))
    asyncio.run(handlers["join"]("s1", None))
    asyncio.run(handlers["disconnect"]("s1"))

    assert [c.args for c in server.enter_room.await_args_list] == [("s1", "a@x.com"), ("s1", ADMIN_CHANNEL)]
    server.leave_room.assert_awaited_once_with("s1", "a@x.com")
