"""
Pydantic schemas for the recognition endpoint.
"""
from typing import Optional

from ayahfind.schemas.base import CamelModel
from ayahfind.schemas.usage import UsageStatsResponse


class VerseMatchResponse(CamelModel):
    surah_number: int
    ayah_number: int
    confidence: float
    explanation: str = ""


class RecognizedVerse(CamelModel):
    text_arabic: str
    translation: str
    surah_name: str
    surah_name_arabic: str
    surah_translation: str
    revelation_type: str


class RecognitionResponse(CamelModel):
    success: bool
    processing_time_ms: int
    transcription: Optional[str] = None
    match: Optional[VerseMatchResponse] = None
    verse: Optional[RecognizedVerse] = None
    usage: Optional[UsageStatsResponse] = None
    message: Optional[str] = None
