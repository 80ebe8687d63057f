"""
Pydantic schemas for Quran reference endpoints (snake_case on the wire).
"""
from typing import List
from pydantic import BaseModel, ConfigDict


class QuranModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class SurahDTO(QuranModel):
    number: int
    name_arabic: str
    name_transliteration: str
    name_english: str
    revelation_type: str
    ayah_count: int


class AyahDTO(QuranModel):
    surah_number: int
    ayah_number: int
    text_arabic: str
    translation: str


class SurahDetailDTO(SurahDTO):
    ayahs: List[AyahDTO]


class VerseDTO(QuranModel):
    surah_number: int
    ayah_number: int
    text_arabic: str
    translation: str
    surah_name: str
    surah_name_arabic: str
    surah_translation: str
    revelation_type: str
    total_verses: int


class SurahListResponse(BaseModel):
    surahs: List[SurahDTO]
    count: int


class SurahResponse(BaseModel):
    surah: SurahDetailDTO


class VerseResponse(BaseModel):
    verse: VerseDTO


class SearchResponse(BaseModel):
    query: str
    language: str
    results: List[VerseDTO]
    count: int
