"""Live relay and client library exceptions."""


class LiveRelayError(Exception):
    """Base exception for all live relay and live client operations."""


class ConfigurationError(LiveRelayError):
    """Raised when a model identifier or credential is missing before connecting."""


class ConnectionTimeoutError(LiveRelayError):
    """Raised when a handshake does not reach OPEN within its timeout."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Connection not open after {timeout_seconds:g}s")


class TransportError(LiveRelayError):
    """Raised when a send or receive fails on an established socket."""


class UpstreamHandshakeError(LiveRelayError):
    """Raised when dialing the upstream did not yield a protocol upgrade."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ToolExecutionError(LiveRelayError):
    """Raised when the tool-execution collaborator fails for a function call."""

    def __init__(self, name: str, call_id: str | None, message: str) -> None:
        self.name = name
        self.call_id = call_id
        super().__init__(f"[tool:{name}] {message}")


class APIForwardingError(LiveRelayError):
    """Raised when a REST request cannot be forwarded to the translation service."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        self.status_code = status_code
        super().__init__(message)
