"""
Read-only Quran reference data.

Loads surah metadata, Arabic text and English translation from a JSON file
once per process and serves lookups and keyword search from memory.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from ayahfind.core.config import QURAN_DATA_DIR
from ayahfind.core.errors import ServerError

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data" / "quran"
DATA_FILE = "quran.json"

TOTAL_SURAHS = 114
MAX_SEARCH_RESULTS = 50
SEARCH_LANGUAGES = ("english", "arabic")

# Harakat, Quranic annotation marks and the superscript alef
_ARABIC_MARKS = re.compile(r"[\u0610-\u061A\u064B-\u065F\u0670\u06D6-\u06ED]")
_ALEF_VARIANTS = re.compile(r"[\u0622\u0623\u0625\u0671]")


def normalize_arabic(text: str) -> str:
    """Strip diacritics and fold alef variants so plain-script queries match."""
    return _ALEF_VARIANTS.sub("\u0627", _ARABIC_MARKS.sub("", text))


@dataclass
class Ayah:
    surah_number: int
    ayah_number: int
    text_arabic: str
    translation: str


@dataclass
class Surah:
    number: int
    name_arabic: str
    name_transliteration: str
    name_english: str
    revelation_type: str
    ayah_count: int
    ayahs: List[Ayah] = field(default_factory=list)

    def get_ayah(self, ayah_number: int) -> Optional[Ayah]:
        if 1 <= ayah_number <= len(self.ayahs):
            ayah = self.ayahs[ayah_number - 1]
            if ayah.ayah_number == ayah_number:
                return ayah
        return next((a for a in self.ayahs if a.ayah_number == ayah_number), None)


@dataclass
class VerseDetail:
    surah_number: int
    ayah_number: int
    text_arabic: str
    translation: str
    surah_name: str
    surah_name_arabic: str
    surah_translation: str
    revelation_type: str
    total_verses: int


class QuranService:
    """In-memory index over the Quran data file."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir or DEFAULT_DATA_DIR)
        self._surahs: Dict[int, Surah] = {}
        self._loaded = False

    def _load(self) -> None:
        if self._loaded:
            return
        path = self.data_dir / DATA_FILE
        try:
            with path.open(encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load Quran data from {path}: {e}")
            raise ServerError("Failed to load Quran data")

        for entry in raw:
            number = int(entry["id"])
            self._surahs[number] = Surah(
                number=number,
                name_arabic=entry["name"],
                name_transliteration=entry["transliteration"],
                name_english=entry["translation"],
                revelation_type=entry["type"].lower(),
                ayah_count=int(entry.get("total_verses", len(entry["verses"]))),
                ayahs=[
                    Ayah(
                        surah_number=number,
                        ayah_number=int(verse["id"]),
                        text_arabic=verse["text"],
                        translation=verse.get("translation", ""),
                    )
                    for verse in entry["verses"]
                ],
            )

        self._loaded = True
        logger.info(f"Quran data loaded: {len(self._surahs)} surahs from {path}")

    def _detail(self, surah: Surah, ayah: Ayah) -> VerseDetail:
        return VerseDetail(
            surah_number=surah.number,
            ayah_number=ayah.ayah_number,
            text_arabic=ayah.text_arabic,
            translation=ayah.translation,
            surah_name=surah.name_transliteration,
            surah_name_arabic=surah.name_arabic,
            surah_translation=surah.name_english,
            revelation_type=surah.revelation_type,
            total_verses=surah.ayah_count,
        )

    def get_all_surahs(self) -> List[Surah]:
        self._load()
        return [self._surahs[n] for n in sorted(self._surahs)]

    def get_surah(self, number: int) -> Optional[Surah]:
        self._load()
        return self._surahs.get(number)

    def get_verse(self, surah_number: int, ayah_number: int) -> Optional[VerseDetail]:
        self._load()
        surah = self._surahs.get(surah_number)
        if not surah:
            return None
        ayah = surah.get_ayah(ayah_number)
        if not ayah:
            return None
        return self._detail(surah, ayah)

    def search_verses(self, query: str, language: str = "english",
                      limit: int = MAX_SEARCH_RESULTS) -> List[VerseDetail]:
        """Case-insensitive substring search over translation or Arabic text."""
        self._load()
        results = []

        if language == "arabic":
            needle = normalize_arabic(query.strip())
        else:
            needle = query.strip().lower()
        if not needle:
            return results

        for number in sorted(self._surahs):
            surah = self._surahs[number]
            for ayah in surah.ayahs:
                if language == "arabic":
                    haystack = normalize_arabic(ayah.text_arabic)
                else:
                    haystack = ayah.translation.lower()
                if needle in haystack:
                    results.append(self._detail(surah, ayah))
                    if len(results) >= limit:
                        return results
        return results


@lru_cache
def get_quran_service() -> QuranService:
    """Shared read-only Quran index (dependency)."""
    return QuranService(Path(QURAN_DATA_DIR) if QURAN_DATA_DIR else None)
