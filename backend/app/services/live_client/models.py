"""Live client configuration and JSON envelope builders.

Outbound envelopes (client -> upstream):
    {"setup": {...}}
    {"clientContent": {"turns": [{"role": "user", "parts": [...]}], "turnComplete": bool}}
    {"realtimeInput": {"mediaChunks": [{"mimeType": ..., "data": <base64>}]}}
    {"toolResponse": {"functionResponses": [...]}}

Inbound envelopes (upstream -> client):
    {"setupComplete": {}}
    {"serverContent": {"interrupted"?, "turnComplete"?, "modelTurn": {"parts": [...]}}}
    {"toolCall": {"functionCalls": [{"id", "name", "args"}]}}
    {"toolCallCancellation": {"ids": [...]}}
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.core.config import settings

# Inline parts whose mime type starts with this prefix are played as audio.
AUDIO_MIME_PREFIX = "audio/pcm"

DEFAULT_ROLE = "user"


class LiveConfig(BaseModel):
    """Session configuration sent in the setup envelope.

    Accepts camelCase (wire) or snake_case keys.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    model: str | None = None
    generation_config: dict[str, Any] | None = None
    system_instruction: str | dict[str, Any] | None = None
    tools: list[dict[str, Any]] | None = None


def default_live_config(**overrides: Any) -> LiveConfig:
    """LiveConfig for the configured default model (GEMINI_MODEL_ID)."""
    return LiveConfig(model=settings.GEMINI_MODEL_ID, **overrides)


def setup_envelope(config: LiveConfig, extra_tools: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    """Build the first envelope of a session from its configuration."""
    model = config.model or ""
    setup: dict[str, Any] = {"model": model if model.startswith("models/") else f"models/{model}"}

    if config.generation_config:
        setup["generationConfig"] = config.generation_config

    if isinstance(config.system_instruction, str):
        if config.system_instruction:
            setup["systemInstruction"] = {"parts": [{"text": config.system_instruction}]}
    elif config.system_instruction:
        setup["systemInstruction"] = config.system_instruction

    tools = list(config.tools or []) + list(extra_tools or [])
    if tools:
        setup["tools"] = tools

    return {"setup": setup}


def normalize_part(part: Any) -> dict[str, Any]:
    """Shape one outgoing value as a content part.

    - str -> {"text": part}
    - a mapping with a truthy "text" or "inlineData" is already a part
    - any other value is JSON-serialised into a text part
    """
    if isinstance(part, str):
        return {"text": part}
    if isinstance(part, BaseModel):
        part = part.model_dump(by_alias=True, exclude_none=True)
    if isinstance(part, dict) and (part.get("text") or part.get("inlineData")):
        return part
    return {"text": json.dumps(part, default=str)}


def normalize_parts(parts: Any) -> list[dict[str, Any]]:
    items = parts if isinstance(parts, (list, tuple)) else [parts]
    return [normalize_part(item) for item in items]


def client_content_envelope(parts: Any, turn_complete: bool = True, role: str = DEFAULT_ROLE) -> dict[str, Any]:
    return {
        "clientContent": {
            "turns": [{"role": role, "parts": normalize_parts(parts)}],
            "turnComplete": turn_complete,
        }
    }


def realtime_input_envelope(chunks: list[dict[str, Any]]) -> dict[str, Any]:
    return {"realtimeInput": {"mediaChunks": list(chunks)}}


def tool_response_envelope(tool_response: dict[str, Any]) -> dict[str, Any]:
    return {"toolResponse": tool_response}


def describe_media_batch(chunks: list[dict[str, Any]]) -> tuple[str, int]:
    """Classify a realtime-input batch for logging.

    Returns:
        ("audio + video" | "audio" | "video" | "unknown", total data length).
    """
    has_audio = False
    has_video = False
    total_size = 0
    for chunk in chunks:
        mime_type = chunk.get("mimeType") or ""
        total_size += len(chunk.get("data") or "")
        if "audio" in mime_type:
            has_audio = True
        if "image" in mime_type:
            has_video = True

    if has_audio and has_video:
        return "audio + video", total_size
    if has_audio:
        return "audio", total_size
    if has_video:
        return "video", total_size
    return "unknown", total_size
