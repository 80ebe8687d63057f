"""
OpenAI recognition provider: Whisper transcription plus chat-model verse matching.
"""
import json
import logging
from typing import Optional

from openai import OpenAI, APIError

from ayahfind.core.config import (
    OPENAI_API_KEY,
    OPENAI_MATCH_MODEL,
    OPENAI_TRANSCRIBE_MODEL,
)
from ayahfind.llm.provider import RecognitionProvider, Transcription, VerseMatch

logger = logging.getLogger(__name__)

MATCH_TEMPERATURE = 0.3
MATCH_MAX_TOKENS = 500
WHISPER_PROMPT = "Quranic recitation, Arabic surah and ayah."

SYSTEM_PROMPT = (
    "You are a Quran expert who identifies verses from transcribed Arabic text. "
    "Always respond with valid JSON only."
)

MATCH_PROMPT = """A user has recited a verse of the Quran, and the audio was transcribed to Arabic text (which may contain errors or missing words).

Transcribed text: "{text}"

Identify which Surah (chapter) and Ayah (verse) this transcription most likely corresponds to.
Be flexible with transcription errors, missing words, or slight variations.
Give a confidence score from 0 to 100 and briefly explain your choice.

Respond ONLY with JSON in this exact format:
{{"surahNumber": <number 1-114>, "ayahNumber": <number>, "confidence": <number 0-100>, "explanation": "<brief explanation>"}}

If you cannot find a match, respond with:
{{"surahNumber": null, "ayahNumber": null, "confidence": 0, "explanation": "Could not find a confident match"}}"""


def parse_match(content: str) -> Optional[VerseMatch]:
    """Parse the model's JSON answer; None for malformed or empty matches."""
    try:
        data = json.loads(content)
    except (TypeError, ValueError):
        logger.warning(f"Verse match response is not valid JSON: {content!r}")
        return None

    if not isinstance(data, dict):
        return None

    surah = data.get("surahNumber")
    ayah = data.get("ayahNumber")
    if surah is None or ayah is None:
        return None

    try:
        return VerseMatch(
            surah_number=int(surah),
            ayah_number=int(ayah),
            confidence=float(data.get("confidence") or 0),
            explanation=str(data.get("explanation") or ""),
        )
    except (TypeError, ValueError):
        logger.warning(f"Verse match response has invalid fields: {data}")
        return None


class OpenAIRecognitionProvider(RecognitionProvider):
    """Recognition provider using the official OpenAI SDK."""

    def __init__(self, api_key: Optional[str] = None):
        """Initialize OpenAI client."""
        self.api_key = api_key or OPENAI_API_KEY
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY not configured")
        self.client = OpenAI(api_key=self.api_key)
        logger.info("OpenAI recognition provider initialized")

    def transcribe(
        self,
        audio: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> Transcription:
        """Transcribe audio with Whisper, forcing Arabic."""
        try:
            response = self.client.audio.transcriptions.create(
                file=(filename, audio, content_type or "audio/m4a"),
                model=OPENAI_TRANSCRIBE_MODEL,
                language="ar",
                prompt=WHISPER_PROMPT,
                response_format="verbose_json",
                temperature=0,
            )
        except APIError as e:
            logger.error(f"OpenAI transcription error: {e}", exc_info=True)
            raise

        text = (response.text or "").strip()
        if text == WHISPER_PROMPT:
            # Whisper echoes the prompt on near-silent input
            logger.warning("Transcription echoed the prompt; audio may be too quiet")
            text = ""

        return Transcription(
            text=text,
            language=getattr(response, "language", None),
            duration=getattr(response, "duration", None),
        )

    def match_verse(self, text: str) -> Optional[VerseMatch]:
        """Ask the chat model for the most likely surah and ayah."""
        try:
            response = self.client.chat.completions.create(
                model=OPENAI_MATCH_MODEL,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": MATCH_PROMPT.format(text=text)},
                ],
                temperature=MATCH_TEMPERATURE,
                max_tokens=MATCH_MAX_TOKENS,
                response_format={"type": "json_object"},
            )
        except APIError as e:
            logger.error(f"OpenAI verse matching error: {e}", exc_info=True)
            raise

        content = response.choices[0].message.content or ""
        match = parse_match(content)
        if match:
            match.metadata = {
                "model": OPENAI_MATCH_MODEL,
                "tokens_in": response.usage.prompt_tokens if response.usage else 0,
                "tokens_out": response.usage.completion_tokens if response.usage else 0,
            }
        return match
