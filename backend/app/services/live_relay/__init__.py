"""Live relay service — transparent WebSocket relay to the upstream streaming API.

Public API:
    - RelayEndpoint: One client leg + one upstream leg, handshake buffering, close propagation.
    - PendingMessageQueue: FIFO buffer for client frames sent before the upstream is open.
    - Channel: Abstract connection leg (StarletteChannel, WebSocketsChannel adapters).
    - connect_upstream: Default outbound dial capability (websockets client).
    - build_upstream_target: Derives upstream URL/headers from an inbound upgrade.
    - RelayConfig: Explicit relay configuration built at startup.
    - Exceptions: ConfigurationError, ConnectionTimeoutError, TransportError, ...
"""

from app.services.live_relay.channel import (
    Channel,
    ChannelClosed,
    StarletteChannel,
    UpstreamConnector,
    WebSocketsChannel,
    connect_upstream,
)
from app.services.live_relay.endpoint import RelayEndpoint, UpstreamTarget, build_upstream_target
from app.services.live_relay.exceptions import (
    APIForwardingError,
    ConfigurationError,
    ConnectionTimeoutError,
    LiveRelayError,
    ToolExecutionError,
    TransportError,
    UpstreamHandshakeError,
)
from app.services.live_relay.models import (
    INTERNAL_ERROR,
    NORMAL_CLOSURE,
    POLICY_VIOLATION,
    Closure,
    ConnectionRole,
    ConnectionState,
    RelayConfig,
    RelayState,
    sendable_close_code,
    truncate_close_reason,
)
from app.services.live_relay.pending_queue import PendingMessageQueue

__all__ = [
    "APIForwardingError",
    "Channel",
    "ChannelClosed",
    "Closure",
    "ConfigurationError",
    "ConnectionRole",
    "ConnectionState",
    "ConnectionTimeoutError",
    "INTERNAL_ERROR",
    "LiveRelayError",
    "NORMAL_CLOSURE",
    "POLICY_VIOLATION",
    "PendingMessageQueue",
    "RelayConfig",
    "RelayEndpoint",
    "RelayState",
    "StarletteChannel",
    "ToolExecutionError",
    "TransportError",
    "UpstreamConnector",
    "UpstreamHandshakeError",
    "UpstreamTarget",
    "WebSocketsChannel",
    "build_upstream_target",
    "connect_upstream",
    "sendable_close_code",
    "truncate_close_reason",
]
