# supportdesk/realtime.py
"""
Socket.IO side channel.

Clients join a channel named after their (lower-cased) email, admins also join
``admin_room``. Channels are Socket.IO rooms; membership is kept by the
server's client manager and dropped by it on disconnect.
"""
import logging

import socketio

from supportdesk import config

logger = logging.getLogger(__name__)

ADMIN_CHANNEL = "admin_room"


def email_channel(email: str) -> str:
    return (email or "").strip().lower()


class ChannelRegistry:
    """Channel joins and pushes on top of the Socket.IO server's rooms."""

    def __init__(self, server: socketio.AsyncServer = None):
        self.server = server

    async def join(self, sid: str, channel: str):
        if self.server is None or not channel:
            return
        await self.server.enter_room(sid, channel)

    async def leave(self, sid: str, channel: str):
        if self.server is None or not channel:
            return
        await self.server.leave_room(sid, channel)

    def channels_of(self, sid: str) -> list[str]:
        if self.server is None:
            return []
        # Socket.IO puts every session in a room named after its own sid
        return [room for room in self.server.rooms(sid) if room != sid]

    async def emit(self, channel: str, event: str, payload) -> bool:
        """Push to everyone in the channel. No ack, no replay."""
        if self.server is None or not channel:
            return False
        await self.server.emit(event, payload, room=channel)
        return True


def register_handlers(sio: socketio.AsyncServer, registry: ChannelRegistry):
    @sio.event
    async def connect(sid, environ, auth=None):
        logger.info("Socket connected: %s", sid)

    @sio.on("join")
    async def join(sid, email=None):
        channel = email_channel(email)
        if channel:
            await registry.join(sid, channel)
            logger.info("Socket %s joined %s", sid, channel)

    @sio.on("joinAdmin")
    async def join_admin(sid, data=None):
        await registry.join(sid, ADMIN_CHANNEL)
        logger.info("Socket %s joined %s", sid, ADMIN_CHANNEL)

    @sio.on("leave")
    async def leave(sid, email=None):
        channel = email_channel(email)
        if channel:
            await registry.leave(sid, channel)
            logger.info("Socket %s left %s", sid, channel)

    @sio.event
    async def disconnect(sid, reason=None):
        logger.info("Socket disconnected: %s", sid)


def create_socket_server():
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*" if config.CORS_ORIGINS == ["*"] else config.CORS_ORIGINS,
    )
    registry = ChannelRegistry(sio)
    register_handlers(sio, registry)
    return sio, registry


sio, channels = create_socket_server()
