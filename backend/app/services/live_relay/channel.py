"""Connection legs of a relayed session.

A Channel is one WebSocket connection seen from the relay: it can receive a
frame, send a frame and be closed. Frames are opaque: text stays ``str`` and
binary stays ``bytes``. When the peer closes, ``receive()`` raises
ChannelClosed carrying the close code and reason.

Two hosting adapters are provided:
- StarletteChannel: the inbound FastAPI/Starlette WebSocket (client leg).
- WebSocketsChannel: an outbound ``websockets`` client connection (upstream leg).

``connect_upstream`` is the default "open outbound connection" capability.
The relay and the client library only ever see a connector with the signature
``(url, headers) -> Awaitable[Channel]``.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from fastapi import WebSocket
from starlette.websockets import WebSocketState
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from app.services.live_relay.exceptions import UpstreamHandshakeError
from app.services.live_relay.models import (
    ABNORMAL_CLOSURE,
    NO_STATUS_RECEIVED,
    ConnectionRole,
    ConnectionState,
)

logger = logging.getLogger(__name__)

Frame = str | bytes


class ChannelClosed(Exception):
    """Raised by Channel.receive() once the connection has been closed."""

    def __init__(self, code: int, reason: str = "") -> None:
        self.code = code
        self.reason = reason
        super().__init__(f"connection closed (code={code}, reason={reason!r})")


class Channel(ABC):
    """One leg of a relayed session."""

    def __init__(self, role: ConnectionRole) -> None:
        self.role = role
        self.state = ConnectionState.CONNECTING

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    @abstractmethod
    async def receive(self) -> Frame:
        """Next frame from the peer.

        Raises:
            ChannelClosed: Once the connection has been closed.
        """

    @abstractmethod
    async def send(self, data: Frame) -> None:
        """Send one frame, text or binary as given."""

    @abstractmethod
    async def close(self, code: int, reason: str = "") -> None:
        """Close the connection. Calling it on a closed channel does nothing."""


UpstreamConnector = Callable[[str, dict[str, str]], Awaitable[Channel]]


class StarletteChannel(Channel):
    """Client leg backed by an accepted Starlette WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        super().__init__(ConnectionRole.CLIENT)
        self._ws = websocket
        if websocket.application_state == WebSocketState.CONNECTED:
            self.state = ConnectionState.OPEN

    async def accept(self) -> None:
        await self._ws.accept()
        self.state = ConnectionState.OPEN

    async def receive(self) -> Frame:
        message = await self._ws.receive()
        if message["type"] == "websocket.disconnect":
            self.state = ConnectionState.CLOSED
            raise ChannelClosed(message.get("code") or NO_STATUS_RECEIVED, message.get("reason") or "")
        if message.get("text") is not None:
            return message["text"]
        if message.get("bytes") is not None:
            return message["bytes"]
        return ""

    async def send(self, data: Frame) -> None:
        if isinstance(data, bytes):
            await self._ws.send_bytes(data)
        else:
            await self._ws.send_text(data)

    async def close(self, code: int, reason: str = "") -> None:
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return
        self.state = ConnectionState.CLOSING
        try:
            if (
                self._ws.application_state == WebSocketState.CONNECTED
                and self._ws.client_state == WebSocketState.CONNECTED
            ):
                await self._ws.close(code=code, reason=reason)
        finally:
            self.state = ConnectionState.CLOSED


class WebSocketsChannel(Channel):
    """Upstream leg backed by a ``websockets`` client connection."""

    def __init__(self, connection: ClientConnection, role: ConnectionRole = ConnectionRole.UPSTREAM) -> None:
        super().__init__(role)
        self._conn = connection
        self.state = ConnectionState.OPEN

    async def receive(self) -> Frame:
        try:
            return await self._conn.recv()
        except ConnectionClosed as exc:
            self.state = ConnectionState.CLOSED
            if exc.rcvd is None:
                raise ChannelClosed(ABNORMAL_CLOSURE, "") from exc
            raise ChannelClosed(exc.rcvd.code, exc.rcvd.reason) from exc

    async def send(self, data: Frame) -> None:
        await self._conn.send(data)

    async def close(self, code: int, reason: str = "") -> None:
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return
        self.state = ConnectionState.CLOSING
        try:
            await self._conn.close(code=code, reason=reason)
        finally:
            self.state = ConnectionState.CLOSED


async def connect_upstream(
    url: str,
    headers: dict[str, str],
    *,
    open_timeout: float = 10.0,
    user_agent: str | None = None,
) -> WebSocketsChannel:
    """Dial an upstream WebSocket and wrap it as a Channel.

    Raises:
        UpstreamHandshakeError: If the server refuses the upgrade, the network
            fails, or the handshake does not finish within ``open_timeout``.
    """
    try:
        connection = await connect(
            url,
            additional_headers=headers,
            user_agent_header=user_agent,
            open_timeout=open_timeout,
            max_size=None,
        )
    except InvalidStatus as exc:
        status = exc.response.status_code
        raise UpstreamHandshakeError(f"Upstream rejected the upgrade with HTTP {status}", status_code=status) from exc
    except (WebSocketException, OSError, TimeoutError) as exc:
        raise UpstreamHandshakeError(f"Failed to upgrade to WebSocket upstream: {exc}") from exc

    logger.debug("Upstream connection established")
    return WebSocketsChannel(connection)
