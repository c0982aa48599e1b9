"""Tests for serverContent classification into Audio / Content / turn signals."""

import base64

from app.services.live_client import (
    Audio,
    Content,
    ContentClassifier,
    Interrupted,
    TurnComplete,
    is_audio_part,
)

PCM = b"\x01\x00\x02\x00\x03\x00"


def _audio_part(data: bytes = PCM, mime_type: str = "audio/pcm;rate=24000") -> dict:
    return {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode("ascii")}}


TEXT_PART = {"text": "नमस्ते"}


class TestIsAudioPart:
    def test_pcm_inline_data(self):
        assert is_audio_part(_audio_part()) is True

    def test_image_inline_data(self):
        assert is_audio_part({"inlineData": {"mimeType": "image/jpeg", "data": ""}}) is False

    def test_other_audio_format_is_not_pcm(self):
        assert is_audio_part(_audio_part(mime_type="audio/mp3")) is False

    def test_text_part(self):
        assert is_audio_part(TEXT_PART) is False

    def test_non_dict(self):
        assert is_audio_part("text") is False


class TestContentClassifier:
    def setup_method(self):
        self.classifier = ContentClassifier()

    def test_audio_and_text_split(self):
        signals = self.classifier.classify({"modelTurn": {"parts": [_audio_part(), TEXT_PART]}})
        assert signals == [Audio(data=PCM), Content(parts=[TEXT_PART])]

    def test_all_audio_emits_no_content(self):
        second = b"\x09\x00"
        signals = self.classifier.classify({"modelTurn": {"parts": [_audio_part(), _audio_part(second)]}})
        assert signals == [Audio(data=PCM), Audio(data=second)]
        assert not any(isinstance(s, Content) for s in signals)

    def test_interrupted_suppresses_turn_processing(self):
        signals = self.classifier.classify(
            {"interrupted": True, "turnComplete": True, "modelTurn": {"parts": [_audio_part(), TEXT_PART]}}
        )
        assert signals == [Interrupted()]

    def test_turn_complete_is_not_exclusive(self):
        signals = self.classifier.classify({"turnComplete": True, "modelTurn": {"parts": [TEXT_PART]}})
        assert signals == [TurnComplete(), Content(parts=[TEXT_PART])]

    def test_turn_complete_alone(self):
        assert self.classifier.classify({"turnComplete": True}) == [TurnComplete()]

    def test_empty_server_content(self):
        assert self.classifier.classify({}) == []

    def test_content_keeps_original_order(self):
        code = {"executableCode": {"code": "print(1)"}}
        signals = self.classifier.classify({"modelTurn": {"parts": [TEXT_PART, _audio_part(), code]}})
        assert signals[-1] == Content(parts=[TEXT_PART, code])

    def test_content_exposes_model_turn(self):
        (content,) = self.classifier.classify({"modelTurn": {"parts": [TEXT_PART]}})
        assert content.model_turn == {"modelTurn": {"parts": [TEXT_PART]}}

    def test_undecodable_audio_is_dropped(self):
        bad = {"inlineData": {"mimeType": "audio/pcm", "data": "not base64!"}}
        signals = self.classifier.classify({"modelTurn": {"parts": [bad, TEXT_PART]}})
        assert signals == [Content(parts=[TEXT_PART])]

    def test_partition(self):
        audio, other = ContentClassifier.partition([TEXT_PART, _audio_part()])
        assert audio == [_audio_part()]
        assert other == [TEXT_PART]
