"""
Recitation recognition pipeline.

Audio upload -> transcription -> verse match -> verse lookup. A search is
only counted against the caller's quota when a verse is actually found.
Every attempt is recorded in recognition history.
"""
import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ayahfind.core.errors import RateLimitError, ValidationError
from ayahfind.db.models.recognition_history import RecognitionHistory
from ayahfind.llm.provider import RecognitionProvider, VerseMatch
from ayahfind.services import usage_service
from ayahfind.services.quran_service import QuranService, VerseDetail
from ayahfind.services.usage_service import UsageStats

logger = logging.getLogger(__name__)

MAX_AUDIO_SIZE_MB = 10
MAX_AUDIO_SIZE_BYTES = MAX_AUDIO_SIZE_MB * 1024 * 1024
ALLOWED_AUDIO_TYPES = (
    "audio/m4a",
    "audio/x-m4a",
    "audio/mp4",
    "audio/wav",
    "audio/mp3",
    "audio/mpeg",
)
CONFIDENCE_THRESHOLD = 30

MSG_NO_TRANSCRIPTION = "Could not transcribe audio. Please try again."
MSG_NO_MATCH = "Could not find a confident match. Please try recording again with clearer audio."
MSG_VERSE_NOT_FOUND = "Verse not found in database."


@dataclass
class RecognitionOutcome:
    success: bool
    processing_time_ms: int
    transcription: Optional[str] = None
    match: Optional[VerseMatch] = None
    verse: Optional[VerseDetail] = None
    usage: Optional[UsageStats] = None
    message: Optional[str] = None


@lru_cache
def get_recognition_provider() -> RecognitionProvider:
    """Shared recognition provider (dependency)."""
    from ayahfind.llm.openai_provider import OpenAIRecognitionProvider
    return OpenAIRecognitionProvider()


def validate_audio(content_type: Optional[str], size: int) -> None:
    """
    Check upload size and format.

    Raises:
        ValidationError: Empty, oversized or unsupported audio
    """
    if size <= 0:
        raise ValidationError("No audio file provided")
    if size > MAX_AUDIO_SIZE_BYTES:
        raise ValidationError(f"Audio file too large. Maximum size is {MAX_AUDIO_SIZE_MB}MB")
    if content_type not in ALLOWED_AUDIO_TYPES:
        raise ValidationError(
            f"Invalid audio format. Allowed formats: {', '.join(ALLOWED_AUDIO_TYPES)}"
        )


def check_quota(db: Session, user_id: Optional[int], device_id: Optional[str]) -> None:
    """
    Raises:
        ValidationError: Neither a user nor a device identifies the caller
        RateLimitError: The caller has no searches left in the current window
    """
    if user_id is not None:
        allowance = usage_service.can_user_search(db, user_id)
    elif device_id:
        allowance = usage_service.can_anonymous_search(db, device_id)
    else:
        raise ValidationError("Authentication or device ID required")

    if not allowance.allowed:
        raise RateLimitError(allowance.reason or "Usage limit exceeded")


def save_history(
    db: Session,
    user_id: Optional[int],
    device_id: Optional[str],
    transcription: str,
    success: bool,
    processing_time_ms: int,
    match: Optional[VerseMatch] = None,
    error_message: Optional[str] = None,
) -> None:
    """Record a recognition attempt. Failures are logged and never raised."""
    try:
        db.add(RecognitionHistory(
            user_id=user_id,
            device_id=device_id,
            transcription=transcription or "",
            surah_number=match.surah_number if match else None,
            ayah_number=match.ayah_number if match else None,
            confidence=match.confidence if match else None,
            success=success,
            error_message=error_message,
            processing_time_ms=processing_time_ms,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save recognition history: {e}")


def recognize(
    db: Session,
    provider: RecognitionProvider,
    quran: QuranService,
    audio: bytes,
    filename: str,
    content_type: Optional[str],
    user_id: Optional[int] = None,
    device_id: Optional[str] = None,
) -> RecognitionOutcome:
    """
    Identify the recited verse in an audio clip.

    Quota is checked before any work; usage is incremented only on success.
    """
    started = time.monotonic()

    def elapsed_ms() -> int:
        return int((time.monotonic() - started) * 1000)

    check_quota(db, user_id, device_id)
    validate_audio(content_type, len(audio))

    logger.info(
        f"Recognition started: file={filename}, size={len(audio) / 1024:.2f}KB, type={content_type}"
    )

    text = ""
    try:
        text = provider.transcribe(audio, filename, content_type).text
        if not text:
            save_history(db, user_id, device_id, "", False, elapsed_ms(),
                         error_message="Transcription failed")
            return RecognitionOutcome(success=False, processing_time_ms=elapsed_ms(),
                                      message=MSG_NO_TRANSCRIPTION)

        match = provider.match_verse(text)
    except Exception as e:
        save_history(db, user_id, device_id, text, False, elapsed_ms(), error_message=str(e))
        raise

    if not match or match.confidence < CONFIDENCE_THRESHOLD:
        save_history(db, user_id, device_id, text, False, elapsed_ms(),
                     match=match, error_message="No confident match found")
        return RecognitionOutcome(success=False, processing_time_ms=elapsed_ms(),
                                  transcription=text, message=MSG_NO_MATCH)

    verse = quran.get_verse(match.surah_number, match.ayah_number)
    if not verse:
        save_history(db, user_id, device_id, text, False, elapsed_ms(),
                     match=match, error_message="Verse not found in database")
        return RecognitionOutcome(success=False, processing_time_ms=elapsed_ms(),
                                  transcription=text, message=MSG_VERSE_NOT_FOUND)

    if user_id is not None:
        usage_service.increment_user_usage(db, user_id)
        usage = usage_service.get_user_usage_stats(db, user_id)
    else:
        usage_service.increment_anonymous_usage(db, device_id)
        usage = usage_service.get_anonymous_usage_stats(db, device_id)

    save_history(db, user_id, device_id, text, True, elapsed_ms(), match=match)
    logger.info(
        f"Recognition succeeded: surah={match.surah_number}, ayah={match.ayah_number}, "
        f"confidence={match.confidence}, time_ms={elapsed_ms()}"
    )

    return RecognitionOutcome(
        success=True,
        processing_time_ms=elapsed_ms(),
        transcription=text,
        match=match,
        verse=verse,
        usage=usage,
    )
