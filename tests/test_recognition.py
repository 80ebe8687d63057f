"""
Tests for the recognition pipeline with a fake provider.
"""
from typing import Optional

import pytest

from ayahfind.core.config import ANONYMOUS_DAILY_SEARCHES
from ayahfind.core.errors import ValidationError
from ayahfind.db.models.recognition_history import RecognitionHistory
from ayahfind.llm.openai_provider import parse_match
from ayahfind.llm.provider import RecognitionProvider, Transcription, VerseMatch
from ayahfind.main import app
from ayahfind.services import recognition_service

DEVICE = {"X-Device-Id": "device-rec"}


class FakeProvider(RecognitionProvider):
    def __init__(self, text: str = "قل هو الله احد", match: Optional[VerseMatch] = None, error: Exception = None):
        self.text = text
        self.match = match
        self.error = error
        self.calls = 0

    def transcribe(self, audio, filename, content_type=None):
        self.calls += 1
        if self.error:
            raise self.error
        return Transcription(text=self.text)

    def match_verse(self, text):
        return self.match


@pytest.fixture
def provider():
    fake = FakeProvider(match=VerseMatch(surah_number=112, ayah_number=1, confidence=92, explanation="Opening of Al-Ikhlas"))
    app.dependency_overrides[recognition_service.get_recognition_provider] = lambda: fake
    yield fake
    app.dependency_overrides.pop(recognition_service.get_recognition_provider, None)


def _upload(content_type="audio/m4a", data=b"\x00" * 2048):
    return {"audio": ("clip.m4a", data, content_type)}


def test_successful_recognition(client, db, provider):
    response = client.post("/recognize", files=_upload(), headers=DEVICE)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["transcription"] == "قل هو الله احد"
    assert body["match"]["surahNumber"] == 112
    assert body["match"]["confidence"] == 92
    assert body["verse"]["surahName"] == "Al-Ikhlas"
    assert body["usage"]["used"] == 1
    assert "processingTimeMs" in body

    history = db.query(RecognitionHistory).all()
    assert len(history) == 1
    assert history[0].success is True
    assert history[0].device_id == "device-rec"


def test_low_confidence_does_not_consume_quota(client, db, provider):
    provider.match = VerseMatch(surah_number=112, ayah_number=1, confidence=10)
    body = client.post("/recognize", files=_upload(), headers=DEVICE).json()
    assert body["success"] is False
    assert "confident match" in body["message"]

    stats = client.get("/usage/stats", headers=DEVICE).json()
    assert stats["used"] == 0
    assert db.query(RecognitionHistory).one().error_message == "No confident match found"


def test_empty_transcription(client, provider):
    provider.text = ""
    body = client.post("/recognize", files=_upload(), headers=DEVICE).json()
    assert body["success"] is False
    assert body["message"] == recognition_service.MSG_NO_TRANSCRIPTION


def test_unknown_verse(client, provider):
    provider.match = VerseMatch(surah_number=2, ayah_number=255, confidence=95)
    body = client.post("/recognize", files=_upload(), headers=DEVICE).json()
    assert body["success"] is False
    assert body["message"] == recognition_service.MSG_VERSE_NOT_FOUND


def test_quota_exhausted_returns_429(client, provider):
    for _ in range(ANONYMOUS_DAILY_SEARCHES):
        assert client.post("/recognize", files=_upload(), headers=DEVICE).json()["success"] is True

    response = client.post("/recognize", files=_upload(), headers=DEVICE)
    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"
    assert provider.calls == ANONYMOUS_DAILY_SEARCHES


def test_requires_identity(client, provider):
    response = client.post("/recognize", files=_upload())
    assert response.status_code == 400
    assert provider.calls == 0


def test_rejects_unsupported_format(client, provider):
    response = client.post("/recognize", files=_upload(content_type="video/mp4"), headers=DEVICE)
    assert response.status_code == 400
    assert "Invalid audio format" in response.json()["error"]


def test_rejects_missing_audio(client, provider):
    response = client.post("/recognize", headers=DEVICE)
    assert response.status_code == 400


def test_rejects_oversized_audio():
    with pytest.raises(ValidationError, match="too large"):
        recognition_service.validate_audio("audio/m4a", recognition_service.MAX_AUDIO_SIZE_BYTES + 1)


def test_oversized_upload_is_read_only_past_the_limit(client, provider, monkeypatch):
    monkeypatch.setattr(recognition_service, "MAX_AUDIO_SIZE_BYTES", 1024)
    received = []
    original = recognition_service.recognize

    def spy(db, recognizer, quran, audio, *args, **kwargs):
        received.append(len(audio))
        return original(db, recognizer, quran, audio, *args, **kwargs)

    monkeypatch.setattr(recognition_service, "recognize", spy)
    response = client.post("/recognize", files=_upload(data=b"\x00" * 4096), headers=DEVICE)

    assert response.status_code == 400
    assert "too large" in response.json()["error"]
    assert received == [1025]
    assert provider.calls == 0


def test_provider_failure_is_recorded(lenient_client, db, provider):
    provider.error = RuntimeError("upstream unavailable")
    response = lenient_client.post("/recognize", files=_upload(), headers=DEVICE)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "code": "INTERNAL_SERVER_ERROR"}
    record = db.query(RecognitionHistory).one()
    assert record.success is False
    assert record.error_message == "upstream unavailable"


def test_parse_match():
    match = parse_match('{"surahNumber": 1, "ayahNumber": 2, "confidence": 88, "explanation": "x"}')
    assert (match.surah_number, match.ayah_number, match.confidence) == (1, 2, 88)
    assert parse_match('{"surahNumber": null, "ayahNumber": null, "confidence": 0}') is None
    assert parse_match("not json") is None
