"""Relay endpoint — bridges one client WebSocket to one upstream WebSocket.

Each relay session runs three concurrent steps on the event loop:
1. client pump: reads client frames; while the upstream is not open they are
   buffered in a PendingMessageQueue, afterwards forwarded directly
2. upstream dial: opens the outbound connection; on success the pending queue
   is drained in order and the session becomes BOTH_OPEN
3. upstream pump: reads upstream frames and forwards them to the client

Frames are never parsed: text is forwarded as text, binary as binary.

Lifecycle:
    INIT -> CLIENT_OPEN -> UPSTREAM_CONNECTING -> BOTH_OPEN -> CLOSING -> CLOSED

Close propagation: whichever leg closes first, the other one is closed with
the same code and reason. A failed dial closes the client with 1011 and a
descriptive reason.

Error propagation is asymmetric:
- client -> upstream forwarding failure: reported to the client in-band as
  ``{"error": "..."}`` and the session continues
- upstream -> client forwarding failure: recorded only
"""

import asyncio
import contextlib
import json
import logging
import uuid
from dataclasses import dataclass

from app.services.live_relay.channel import Channel, ChannelClosed, Frame, UpstreamConnector
from app.services.live_relay.exceptions import (
    ConfigurationError,
    LiveRelayError,
    TransportError,
    UpstreamHandshakeError,
)
from app.services.live_relay.models import (
    INTERNAL_ERROR,
    Closure,
    ConnectionRole,
    RelayConfig,
    RelayState,
    sendable_close_code,
    truncate_close_reason,
)
from app.services.live_relay.pending_queue import PendingMessageQueue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpstreamTarget:
    """Where and how to dial the upstream for one relay session."""

    url: str
    headers: dict[str, str]


def _strip_query_param(query: str, name: str) -> tuple[str, str | None]:
    """Remove every ``name=...`` item from a raw query string.

    The remaining items keep their original order and encoding.
    Returns the new query and the (raw) value of the removed parameter.
    """
    kept: list[str] = []
    value: str | None = None
    for item in query.split("&"):
        if not item:
            continue
        key, _, raw_value = item.partition("=")
        if key == name:
            if value is None:
                value = raw_value
            continue
        kept.append(item)
    return "&".join(kept), value


def build_upstream_target(path: str, query: str, config: RelayConfig) -> UpstreamTarget:
    """Derive the upstream URL and headers from an inbound upgrade request.

    The inbound path and query are forwarded verbatim, except the
    authentication query parameter, which is moved into an outbound header.

    Raises:
        ConfigurationError: If no credential is given and no fallback is configured.
    """
    remaining_query, api_key = _strip_query_param(query or "", config.auth_query_param)
    api_key = api_key or config.fallback_api_key
    if not api_key:
        raise ConfigurationError("API key is missing in WebSocket URL.")

    base = config.upstream_base_url.rstrip("/")
    if not path.startswith("/"):
        path = "/" + path
    url = f"{base}{path}"
    if remaining_query:
        url = f"{url}?{remaining_query}"

    return UpstreamTarget(
        url=url,
        headers={config.api_key_header: api_key},
    )


def _describe(frame: Frame) -> str:
    kind = "binary" if isinstance(frame, bytes) else "text"
    return f"{kind}, {len(frame)} {'bytes' if kind == 'binary' else 'chars'}"


class RelayEndpoint:
    """Owns one client leg and one upstream leg for the lifetime of a session.

    Usage::

        endpoint = RelayEndpoint(client=StarletteChannel(ws), target=target, connector=connect_upstream)
        closure = await endpoint.run()  # blocks until both legs are closed
    """

    def __init__(
        self,
        client: Channel,
        target: UpstreamTarget,
        connector: UpstreamConnector,
        session_id: str | None = None,
    ) -> None:
        self._client = client
        self._target = target
        self._connector = connector
        self._upstream: Channel | None = None
        self._pending = PendingMessageQueue()
        self._state = RelayState.INIT
        self.session_id = session_id or uuid.uuid4().hex[:8]
        self.failures: list[LiveRelayError] = []

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def upstream(self) -> Channel | None:
        return self._upstream

    async def run(self) -> Closure:
        """Drive the session until both legs are closed.

        Returns:
            The Closure that ended the session.
        """
        self._state = RelayState.CLIENT_OPEN
        logger.info("[%s] Client connected, dialing %s", self.session_id, self._target.url)

        client_task = asyncio.create_task(self._pump_client(), name=f"relay-{self.session_id}-client")
        upstream_task: asyncio.Task | None = None
        try:
            self._state = RelayState.UPSTREAM_CONNECTING
            dial_task = asyncio.create_task(
                self._connector(self._target.url, self._target.headers),
                name=f"relay-{self.session_id}-dial",
            )
            await asyncio.wait({client_task, dial_task}, return_when=asyncio.FIRST_COMPLETED)

            if client_task.done():
                return await self._on_client_gone_while_dialing(client_task, dial_task)

            try:
                self._upstream = dial_task.result()
            except Exception as exc:
                return await self._on_dial_failed(exc)

            logger.info("[%s] Upstream connected", self.session_id)
            await self._pending.drain(self._send_buffered)
            self.failures.extend(TransportError(str(exc)) for exc in self._pending.failures)
            self._state = RelayState.BOTH_OPEN

            upstream_task = asyncio.create_task(self._pump_upstream(), name=f"relay-{self.session_id}-upstream")
            done, _ = await asyncio.wait({client_task, upstream_task}, return_when=asyncio.FIRST_COMPLETED)

            self._state = RelayState.CLOSING
            if client_task in done:
                closure = self._closure_from(client_task, ConnectionRole.CLIENT)
                await self._cancel(upstream_task)
                await self._close_leg(self._upstream, closure)
            else:
                closure = self._closure_from(upstream_task, ConnectionRole.UPSTREAM)
                await self._cancel(client_task)
                await self._close_leg(self._client, closure)

            logger.info(
                "[%s] Session closed by %s (code=%d, reason=%r)",
                self.session_id,
                closure.initiator.value if closure.initiator else "relay",
                closure.code,
                closure.reason,
            )
            return closure
        finally:
            await self._cancel(client_task)
            if upstream_task is not None:
                await self._cancel(upstream_task)
            self._state = RelayState.CLOSED

    async def _on_client_gone_while_dialing(self, client_task: asyncio.Task, dial_task: asyncio.Task) -> Closure:
        """The client leg ended before the upstream became ready."""
        self._state = RelayState.CLOSING
        closure = self._closure_from(client_task, ConnectionRole.CLIENT)
        logger.info(
            "[%s] Client closed before upstream was ready (code=%d), abandoning dial",
            self.session_id,
            closure.code,
        )
        if dial_task.done() and not dial_task.cancelled() and dial_task.exception() is None:
            self._upstream = dial_task.result()
            await self._close_leg(self._upstream, closure)
        else:
            await self._cancel(dial_task)
        return closure

    async def _on_dial_failed(self, exc: Exception) -> Closure:
        """Close the client leg with an internal-error code after a failed dial."""
        error = exc if isinstance(exc, UpstreamHandshakeError) else UpstreamHandshakeError(str(exc))
        logger.error("[%s] Failed to connect to upstream: %s", self.session_id, error)
        self.failures.append(error)
        self._state = RelayState.CLOSING
        closure = Closure(code=INTERNAL_ERROR, reason=f"Failed to connect to upstream: {error}")
        await self._close_leg(self._client, closure)
        return closure

    async def _pump_client(self) -> Closure:
        """Read client frames until the client leg closes."""
        while True:
            try:
                frame = await self._client.receive()
            except ChannelClosed as closed:
                return Closure(code=closed.code, reason=closed.reason, initiator=ConnectionRole.CLIENT)

            if self._pending.buffering:
                logger.debug("[%s] Upstream not ready, queued client message (%s)", self.session_id, _describe(frame))
                self._pending.enqueue(frame)
                continue

            await self._forward_to_upstream(frame)

    async def _pump_upstream(self) -> Closure:
        """Read upstream frames until the upstream leg closes."""
        while True:
            try:
                frame = await self._upstream.receive()
            except ChannelClosed as closed:
                return Closure(code=closed.code, reason=closed.reason, initiator=ConnectionRole.UPSTREAM)

            try:
                await self._client.send(frame)
            except Exception as exc:
                # Nobody left to tell: the failed recipient is the client itself.
                error = TransportError(f"Failed to forward message to client: {exc}")
                logger.error("[%s] %s", self.session_id, error)
                self.failures.append(error)

    async def _send_buffered(self, frame: Frame) -> None:
        await self._upstream.send(frame)

    async def _forward_to_upstream(self, frame: Frame) -> None:
        try:
            await self._upstream.send(frame)
        except Exception as exc:
            error = TransportError(f"Failed to forward message: {exc}")
            logger.error("[%s] %s", self.session_id, error)
            self.failures.append(error)
            if self._client.is_open:
                try:
                    await self._client.send(json.dumps({"error": str(error)}))
                except Exception as send_exc:
                    logger.error("[%s] Failed to report forwarding error to client: %s", self.session_id, send_exc)

    def _closure_from(self, task: asyncio.Task, role: ConnectionRole) -> Closure:
        """Closure returned by a pump, or an internal error if the pump crashed."""
        exc = task.exception()
        if exc is None:
            return task.result()
        side = "Client" if role == ConnectionRole.CLIENT else "Upstream"
        logger.error("[%s] %s leg failed: %s", self.session_id, side, exc, exc_info=exc)
        return Closure(code=INTERNAL_ERROR, reason=f"{side} error", initiator=role)

    async def _close_leg(self, channel: Channel, closure: Closure) -> None:
        code = sendable_close_code(closure.code)
        reason = truncate_close_reason(closure.reason)
        try:
            await channel.close(code, reason)
        except Exception as exc:
            error = TransportError(f"Failed to close {channel.role.value} connection: {exc}")
            logger.warning("[%s] %s", self.session_id, error)
            self.failures.append(error)

    @staticmethod
    async def _cancel(task: asyncio.Task) -> None:
        if task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await task
