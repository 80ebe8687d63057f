"""
Recognition provider interface for abstracting speech and matching backends.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass


@dataclass
class Transcription:
    """Standardized transcription result."""
    text: str
    language: Optional[str] = None
    duration: Optional[float] = None


@dataclass
class VerseMatch:
    """A candidate verse identified from transcribed text."""
    surah_number: int
    ayah_number: int
    confidence: float
    explanation: str = ""
    metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}


class RecognitionProvider(ABC):
    """Abstract base class for recitation recognition providers."""

    @abstractmethod
    def transcribe(
        self,
        audio: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> Transcription:
        """
        Transcribe recited audio to Arabic text.

        Args:
            audio: Raw audio bytes
            filename: Original upload filename (used for format detection)
            content_type: MIME type of the upload

        Returns:
            Transcription with the recognized text
        """
        pass

    @abstractmethod
    def match_verse(self, text: str) -> Optional[VerseMatch]:
        """
        Identify the verse a transcription most likely belongs to.

        Returns:
            VerseMatch, or None when no candidate could be identified
        """
        pass
