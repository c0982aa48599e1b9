"""Live relay state models and close-code helpers."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel

# WebSocket close codes (RFC 6455 section 7.4.1)
NORMAL_CLOSURE = 1000
NO_STATUS_RECEIVED = 1005
ABNORMAL_CLOSURE = 1006
POLICY_VIOLATION = 1008
INTERNAL_ERROR = 1011

# Codes an endpoint may put in a close frame. 1005, 1006 and 1015 are
# reserved for reporting and must never be sent.
SENDABLE_CLOSE_CODES = frozenset({1000, 1001, 1002, 1003, 1007, 1008, 1009, 1010, 1011, 1012, 1013, 1014})

MAX_CLOSE_REASON_BYTES = 123


class ConnectionRole(str, Enum):
    """Which side of a relayed session a connection belongs to."""

    CLIENT = "client"
    UPSTREAM = "upstream"


class ConnectionState(str, Enum):
    """Lifecycle states of a single WebSocket connection."""

    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


class RelayState(str, Enum):
    """Lifecycle states of one relay session (client leg + upstream leg)."""

    INIT = "init"
    CLIENT_OPEN = "client_open"
    UPSTREAM_CONNECTING = "upstream_connecting"
    BOTH_OPEN = "both_open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(frozen=True)
class Closure:
    """How a relay session (or one of its legs) ended."""

    code: int
    reason: str = ""
    initiator: ConnectionRole | None = None


class RelayConfig(BaseModel):
    """Explicit relay configuration, built once at startup from settings."""

    upstream_base_url: str = "wss://generativelanguage.googleapis.com"
    api_key_header: str = "x-goog-api-key"
    auth_query_param: str = "key"
    fallback_api_key: str = ""
    user_agent: str = "live-relay"
    open_timeout_seconds: float = 10.0


def sendable_close_code(code: int | None) -> int:
    """Map a received close code onto one that may be sent in a close frame.

    A missing status becomes a normal closure; any other reserved or
    out-of-range code becomes an internal error.
    """
    if code is None or code == NO_STATUS_RECEIVED:
        return NORMAL_CLOSURE
    if code in SENDABLE_CLOSE_CODES or 3000 <= code <= 4999:
        return code
    return INTERNAL_ERROR


def truncate_close_reason(reason: str | None) -> str:
    """Trim a close reason to the 123-byte limit without splitting a character."""
    if not reason:
        return ""
    encoded = reason.encode("utf-8")
    if len(encoded) <= MAX_CLOSE_REASON_BYTES:
        return reason
    return encoded[:MAX_CLOSE_REASON_BYTES].decode("utf-8", errors="ignore")
