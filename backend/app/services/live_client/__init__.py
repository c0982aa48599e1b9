"""Live client service — session client for the bidirectional streaming API.

Public API:
    - SessionClient: connect/disconnect, send, send_realtime_input, send_tool_response, receive.
    - LiveConfig: Session configuration carried in the setup envelope.
    - ContentClassifier: Splits serverContent model turns into Audio and Content signals.
    - ToolManager: Registry of FunctionDeclarations and their handlers.
    - ToolCallBridge: Answers toolCall messages through a tool executor.
    - Signals: Open, Close, ErrorOccurred, Audio, Content, TurnComplete, Interrupted,
      ToolCall, ToolCallCancellation, SetupComplete.
"""

from app.services.live_client.classifier import ContentClassifier, is_audio_part
from app.services.live_client.client import SessionClient
from app.services.live_client.models import LiveConfig, default_live_config, normalize_parts
from app.services.live_client.signals import (
    Audio,
    Close,
    Content,
    ErrorOccurred,
    Interrupted,
    Open,
    SetupComplete,
    Signal,
    ToolCall,
    ToolCallCancellation,
    TurnComplete,
)
from app.services.live_client.tools import ToolCallBridge, ToolExecutor, ToolManager

__all__ = [
    "Audio",
    "Close",
    "Content",
    "ContentClassifier",
    "ErrorOccurred",
    "Interrupted",
    "LiveConfig",
    "Open",
    "SessionClient",
    "SetupComplete",
    "Signal",
    "ToolCall",
    "ToolCallBridge",
    "ToolCallCancellation",
    "ToolExecutor",
    "ToolManager",
    "TurnComplete",
    "default_live_config",
    "is_audio_part",
    "normalize_parts",
]
