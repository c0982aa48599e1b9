"""Session client for the live streaming API.

Connects (directly or through the relay) to the streaming endpoint, formats
outbound envelopes and turns inbound frames into typed signals.

Connection state machine:
    CLOSED --connect()--> CONNECTING --open--> OPEN --close/disconnect()--> CLOSED
                              |
                              +--timeout / dial failure--> CLOSED (connect() raises)

Messages sent while CONNECTING, or while that queue is still being flushed,
are delivered in call order right after the setup envelope. Sending while CLOSED
fails with TransportError.

Supports function calling: toolCall messages are emitted as ToolCall signals
and, when a tool executor is configured, answered through the ToolCallBridge.
"""

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any
from urllib.parse import quote

from app.core.config import settings
from app.services.live_client.classifier import ContentClassifier
from app.services.live_client.models import (
    LiveConfig,
    client_content_envelope,
    describe_media_batch,
    realtime_input_envelope,
    setup_envelope,
    tool_response_envelope,
)
from app.services.live_client.signals import (
    Close,
    ErrorOccurred,
    Open,
    SetupComplete,
    Signal,
    ToolCall,
    ToolCallCancellation,
)
from app.services.live_client.tools import ToolCallBridge, ToolExecutor, ToolManager
from app.services.live_relay.channel import Channel, ChannelClosed, UpstreamConnector, connect_upstream
from app.services.live_relay.exceptions import (
    ConfigurationError,
    ConnectionTimeoutError,
    LiveRelayError,
    TransportError,
    UpstreamHandshakeError,
)
from app.services.live_relay.models import INTERNAL_ERROR, NORMAL_CLOSURE, ConnectionState
from app.services.live_relay.pending_queue import PendingMessageQueue

logger = logging.getLogger(__name__)

DEFAULT_LIVE_API_PATH = "/ws/google.ai.generativelanguage.v1alpha.GenerativeService.BidiGenerateContent"
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0

ErrorHook = Callable[[LiveRelayError], None]


class SessionClient:
    """Async client for one live streaming session at a time.

    Usage::

        client = SessionClient(base_url="ws://localhost:8000")
        await client.connect({"model": "gemini-2.0-flash-exp"}, api_key="...")
        await client.send("Hello")
        async for signal in client.signals():
            if isinstance(signal, Audio):
                play(signal.data)
            elif isinstance(signal, Close):
                break
        await client.disconnect()
    """

    MAX_RECONNECT_ATTEMPTS = 3
    RECONNECT_DELAY_SECONDS = 1.0

    def __init__(
        self,
        base_url: str,
        *,
        path: str = DEFAULT_LIVE_API_PATH,
        connector: UpstreamConnector | None = None,
        tool_manager: ToolExecutor | None = None,
        on_error: ErrorHook | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._path = path
        self._connector = connector or connect_upstream
        self._tool_manager = tool_manager
        self._tool_bridge = (
            ToolCallBridge(tool_manager, self.send_tool_response) if tool_manager is not None else None
        )
        self._on_error = on_error
        self._connect_timeout = connect_timeout
        self._classifier = ContentClassifier()

        self._channel: Channel | None = None
        self._state = ConnectionState.CLOSED
        self._current_model: str | None = None
        self._outbound = PendingMessageQueue()
        self._receive_task: asyncio.Task | None = None
        self._signals: asyncio.Queue[Signal] = asyncio.Queue()
        self.reconnect_attempts = 0

    @classmethod
    def from_settings(cls, base_url: str, **kwargs: Any) -> "SessionClient":
        """Build a client with the path and connect timeout from application settings."""
        kwargs.setdefault("path", settings.LIVE_API_PATH)
        kwargs.setdefault("connect_timeout", settings.LIVE_CONNECT_TIMEOUT_SECONDS)
        return cls(base_url, **kwargs)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def current_model(self) -> str | None:
        return self._current_model

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, config: LiveConfig | dict[str, Any] | None, api_key: str) -> None:
        """Open the transport and send the setup envelope.

        Resolves once the transport is OPEN and any messages queued while
        connecting have been flushed. Queued messages that fail to go out are
        reported as ErrorOccurred signals.

        Raises:
            ConfigurationError: Already connecting or connected, no model, or
                no credential. Raised before any network action.
            ConnectionTimeoutError: The transport did not open within connect_timeout.
            UpstreamHandshakeError: The server refused the upgrade.
            TransportError: Any other failure before OPEN, including a
                disconnect() issued while connecting.
        """
        if self._state == ConnectionState.OPEN:
            raise ConfigurationError("Already connected; disconnect first")
        if self._state == ConnectionState.CONNECTING:
            raise ConfigurationError("Already connecting; wait for connect() to finish or disconnect first")

        if isinstance(config, dict):
            config = LiveConfig.model_validate(config)
        if config is None or not config.model:
            raise ConfigurationError("Invalid configuration: no model specified")
        if not api_key:
            raise ConfigurationError("Invalid configuration: no API key provided")

        self._current_model = config.model
        self._state = ConnectionState.CONNECTING
        outbound = self._outbound = PendingMessageQueue()
        logger.info("Connecting to %s%s (model=%s)", self._base_url, self._path, config.model)

        try:
            channel = await asyncio.wait_for(self._connector(self._url(api_key), {}), timeout=self._connect_timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Connection timed out after %.1fs", self._connect_timeout)
            self._reset_attempt(outbound)
            raise ConnectionTimeoutError(self._connect_timeout) from exc
        except UpstreamHandshakeError:
            self._reset_attempt(outbound)
            raise
        except Exception as exc:
            self._reset_attempt(outbound)
            raise TransportError(f"Error creating WebSocket connection: {exc}") from exc

        if self._outbound is not outbound or self._state != ConnectionState.CONNECTING:
            logger.warning("Connection attempt abandoned while dialing; closing transport")
            await channel.close(NORMAL_CLOSURE, "Client disconnected")
            raise TransportError("Connection aborted before it opened")

        self._channel = channel
        self._state = ConnectionState.OPEN
        self.reconnect_attempts = 0
        logger.info("WebSocket connection established")

        extra_tools = self._tool_manager.build_tools() if isinstance(self._tool_manager, ToolManager) else []
        try:
            await self._transmit(json.dumps(setup_envelope(config, extra_tools)))
        except TransportError:
            await self._teardown_transport(INTERNAL_ERROR, "Setup failed")
            self._reset()
            raise

        # Sends issued during the flush are appended to this queue, behind the earlier ones.
        await outbound.drain(self._transmit)
        for failure in outbound.failures:
            if not isinstance(failure, LiveRelayError):
                failure = TransportError(f"Failed to send queued message: {failure}")
            self._report(failure, kind="transport")

        if self._channel is not channel:
            raise TransportError("Connection closed while flushing queued messages")

        self._emit(Open())
        self._receive_task = asyncio.create_task(self._receive_loop(channel), name="live-client-receive")

    async def disconnect(self) -> None:
        """Close the transport (if any) and reset state. Safe to call repeatedly."""
        logger.info("Disconnecting")
        await self._teardown_transport(NORMAL_CLOSURE, "Client disconnected")
        self._reset()
        logger.info("Disconnected")

    def _url(self, api_key: str) -> str:
        return f"{self._base_url}{self._path}?key={quote(api_key, safe='')}"

    def _reset(self) -> None:
        self._state = ConnectionState.CLOSED
        self._current_model = None

    def _reset_attempt(self, outbound: PendingMessageQueue) -> None:
        if self._outbound is outbound and self._state == ConnectionState.CONNECTING:
            self._reset()

    async def _teardown_transport(self, code: int, reason: str) -> None:
        channel, self._channel = self._channel, None

        task, self._receive_task = self._receive_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if channel is None:
            return
        if channel.is_open:
            try:
                await channel.close(code, reason)
            except Exception as exc:
                logger.warning("Error closing WebSocket: %s", exc)
            self._emit(Close(code=code, reason=reason))

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, parts: Any, turn_complete: bool = True) -> None:
        """Send one user turn.

        Args:
            parts: A string, a part mapping, any JSON-serialisable value, or a
                list of those.
            turn_complete: Whether this message completes the user's turn.
        """
        envelope = client_content_envelope(parts, turn_complete=turn_complete)
        await self._send_envelope(envelope)
        logger.debug("client.send (%d part(s), turnComplete=%s)", len(envelope["clientContent"]["turns"][0]["parts"]), turn_complete)

    async def send_realtime_input(self, chunks: list[dict[str, Any]]) -> None:
        """Send one batch of media chunks ({"mimeType", "data"})."""
        kind, total_size = describe_media_batch(chunks)
        logger.debug("Sending realtime input: %s (%dKB)", kind, round(total_size / 1024))
        await self._send_envelope(realtime_input_envelope(chunks))

    async def send_tool_response(self, tool_response: dict[str, Any]) -> None:
        await self._send_envelope(tool_response_envelope(tool_response))
        logger.info("client.toolResponse (%d response(s))", len(tool_response.get("functionResponses") or []))

    async def _send_envelope(self, envelope: dict[str, Any]) -> None:
        payload = json.dumps(envelope)
        if self._state == ConnectionState.CONNECTING or (
            self._state == ConnectionState.OPEN and self._outbound.buffering
        ):
            self._outbound.enqueue(payload)
            return
        if self._state != ConnectionState.OPEN or self._channel is None:
            raise TransportError("WebSocket is not connected")
        await self._transmit(payload)

    async def _transmit(self, payload: str) -> None:
        try:
            await self._channel.send(payload)
        except Exception as exc:
            raise TransportError(f"Failed to send message: {exc}") from exc

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def signals(self) -> AsyncIterator[Signal]:
        """Yield signals in emission order. Single consumer."""
        while True:
            yield await self._signals.get()

    def _emit(self, signal: Signal) -> None:
        self._signals.put_nowait(signal)

    async def receive(self, raw: str | bytes) -> None:
        """Decode one inbound frame and emit the matching signals.

        Exactly one of toolCall, toolCallCancellation, setupComplete or
        serverContent is handled per message, in that precedence.
        """
        try:
            if isinstance(raw, (bytes, bytearray)):
                raw = raw.decode("utf-8")
            response = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            self._report(TransportError(f"Undecodable message: {exc}"), kind="decode")
            return

        if not isinstance(response, dict):
            logger.warning("Received unmatched message of type %s", type(response).__name__)
            return

        if response.get("toolCall"):
            tool_call = response["toolCall"]
            logger.info("server.toolCall")
            self._emit(ToolCall(call=tool_call))
            if self._tool_bridge is not None:
                await self._tool_bridge.handle_tool_call(tool_call)
            return

        if "toolCallCancellation" in response:
            logger.info("receive.toolCallCancellation")
            self._emit(ToolCallCancellation(payload=response["toolCallCancellation"] or {}))
            return

        if "setupComplete" in response:
            logger.info("server.setupComplete")
            self._emit(SetupComplete())
            return

        if "serverContent" in response:
            for signal in self._classifier.classify(response["serverContent"] or {}):
                self._emit(signal)
            return

        logger.warning("Received unmatched message with keys %s", sorted(response))

    async def _receive_loop(self, channel: Channel) -> None:
        while True:
            try:
                raw = await channel.receive()
            except ChannelClosed as closed:
                logger.warning("WebSocket connection closed (code=%d, reason=%s)", closed.code, closed.reason or "none")
                if self._channel is channel:
                    self._channel = None
                    self._receive_task = None
                    self._reset()
                self._emit(Close(code=closed.code, reason=closed.reason))
                return
            except Exception as exc:
                self._report(TransportError(f"Receive failed: {exc}"), kind="transport")
                if self._channel is channel:
                    self._channel = None
                    self._receive_task = None
                    self._reset()
                try:
                    await channel.close(INTERNAL_ERROR, "Receive failed")
                except Exception as close_exc:
                    logger.warning("Error closing WebSocket: %s", close_exc)
                self._emit(Close(code=INTERNAL_ERROR, reason="Receive failed"))
                return

            try:
                await self.receive(raw)
            except Exception as exc:
                error = exc if isinstance(exc, LiveRelayError) else TransportError(f"Error handling message: {exc}")
                self._report(error, kind="message")

    def _report(self, error: LiveRelayError, kind: str) -> None:
        """Surface a non-fatal error without closing the transport."""
        logger.error("%s error: %s", kind, error)
        self._emit(ErrorOccurred(kind=kind, detail=str(error)))
        if self._on_error is not None:
            try:
                self._on_error(error)
            except Exception:
                logger.exception("on_error hook failed")
