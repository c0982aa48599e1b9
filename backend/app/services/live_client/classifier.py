"""Turns a decoded serverContent envelope into application signals."""

import base64
import binascii
import logging
from typing import Any

from app.services.live_client.models import AUDIO_MIME_PREFIX
from app.services.live_client.signals import Audio, Content, Interrupted, Signal, TurnComplete

logger = logging.getLogger(__name__)


def is_audio_part(part: Any) -> bool:
    """Whether a part carries inline PCM audio."""
    if not isinstance(part, dict):
        return False
    inline = part.get("inlineData")
    if not isinstance(inline, dict):
        return False
    return str(inline.get("mimeType") or "").startswith(AUDIO_MIME_PREFIX)


class ContentClassifier:
    """Partitions a model turn into audio and non-audio parts.

    Rules for one serverContent message:
    - ``interrupted`` set: emit Interrupted and nothing else, even if the
      message also carries a model turn
    - ``turnComplete`` set: emit TurnComplete, then keep processing parts
    - one Audio signal per inline audio part, in order, with decoded bytes
    - one Content signal with the remaining parts, only if any remain
    """

    def classify(self, server_content: dict[str, Any]) -> list[Signal]:
        if server_content.get("interrupted"):
            logger.debug("receive.serverContent: interrupted")
            return [Interrupted()]

        signals: list[Signal] = []
        if server_content.get("turnComplete"):
            logger.debug("receive.serverContent: turnComplete")
            signals.append(TurnComplete())

        model_turn = server_content.get("modelTurn")
        if not model_turn:
            return signals

        audio_parts, other_parts = self.partition(model_turn.get("parts") or [])

        for part in audio_parts:
            data = part["inlineData"].get("data")
            if not data:
                continue
            try:
                signals.append(Audio(data=base64.b64decode(data)))
            except (binascii.Error, ValueError) as exc:
                logger.warning("Dropping undecodable audio part: %s", exc)

        if other_parts:
            signals.append(Content(parts=other_parts))

        return signals

    @staticmethod
    def partition(parts: list[Any]) -> tuple[list[dict[str, Any]], list[Any]]:
        """Split parts into (audio, other), each keeping the original order."""
        audio: list[dict[str, Any]] = []
        other: list[Any] = []
        for part in parts:
            if is_audio_part(part):
                audio.append(part)
            else:
                other.append(part)
        return audio, other
