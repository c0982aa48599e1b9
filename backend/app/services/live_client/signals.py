"""Signals emitted by the SessionClient to the application.

The set is closed: every inbound frame and every transport event maps onto
one or more of these variants, consumed through ``SessionClient.signals()``.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Open:
    """Transport reached OPEN and the setup envelope was sent."""


@dataclass(frozen=True)
class Close:
    code: int
    reason: str = ""


@dataclass(frozen=True)
class ErrorOccurred:
    """A non-fatal error, or the receive failure that ended the session (followed by Close)."""

    kind: str
    detail: str


@dataclass(frozen=True)
class Audio:
    """Decoded PCM bytes from one inline audio part."""

    data: bytes


@dataclass(frozen=True)
class Content:
    """The non-audio parts of one model turn, in their original order."""

    parts: list[dict[str, Any]] = field(default_factory=list)

    @property
    def model_turn(self) -> dict[str, Any]:
        return {"modelTurn": {"parts": self.parts}}


@dataclass(frozen=True)
class TurnComplete:
    pass


@dataclass(frozen=True)
class Interrupted:
    pass


@dataclass(frozen=True)
class ToolCall:
    call: dict[str, Any]


@dataclass(frozen=True)
class ToolCallCancellation:
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SetupComplete:
    pass


Signal = (
    Open
    | Close
    | ErrorOccurred
    | Audio
    | Content
    | TurnComplete
    | Interrupted
    | ToolCall
    | ToolCallCancellation
    | SetupComplete
)
