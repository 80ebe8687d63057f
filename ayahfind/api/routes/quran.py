"""
Quran reference endpoints (read-only, no authentication).
"""
from fastapi import APIRouter, Depends, Query

from ayahfind.core.errors import NotFoundError, ValidationError
from ayahfind.schemas.quran import (
    SearchResponse,
    SurahDetailDTO,
    SurahDTO,
    SurahListResponse,
    SurahResponse,
    VerseDTO,
    VerseResponse,
)
from ayahfind.services.quran_service import (
    SEARCH_LANGUAGES,
    TOTAL_SURAHS,
    QuranService,
    get_quran_service,
    normalize_arabic,
)

router = APIRouter(prefix="/quran", tags=["Quran"])

MIN_QUERY_LENGTH = 3


@router.get("/surahs", response_model=SurahListResponse)
def list_surahs(quran: QuranService = Depends(get_quran_service)):
    surahs = [SurahDTO.model_validate(s) for s in quran.get_all_surahs()]
    return SurahListResponse(surahs=surahs, count=len(surahs))


@router.get("/surahs/{surah_number}", response_model=SurahResponse)
def get_surah(surah_number: int, quran: QuranService = Depends(get_quran_service)):
    surah = quran.get_surah(surah_number) if 1 <= surah_number <= TOTAL_SURAHS else None
    if not surah:
        raise NotFoundError("Surah not found")
    return SurahResponse(surah=SurahDetailDTO.model_validate(surah))


@router.get("/ayahs/{surah_number}/{ayah_number}", response_model=VerseResponse)
def get_ayah(surah_number: int, ayah_number: int, quran: QuranService = Depends(get_quran_service)):
    verse = None
    if 1 <= surah_number <= TOTAL_SURAHS and ayah_number >= 1:
        verse = quran.get_verse(surah_number, ayah_number)
    if not verse:
        raise NotFoundError("Verse not found")
    return VerseResponse(verse=VerseDTO.model_validate(verse))


@router.get("/search", response_model=SearchResponse)
def search(
    q: str = Query(""),
    lang: str = Query("english"),
    quran: QuranService = Depends(get_quran_service)
):
    """Substring search over the English translation or the Arabic text."""
    query = q.strip()
    language = lang.lower()
    if language not in SEARCH_LANGUAGES:
        raise ValidationError(f"Language must be one of: {', '.join(SEARCH_LANGUAGES)}")
    # Diacritics are dropped before matching, so they do not count toward the length
    searchable = normalize_arabic(query) if language == "arabic" else query
    if len(searchable) < MIN_QUERY_LENGTH:
        raise ValidationError(f"Search query must be at least {MIN_QUERY_LENGTH} characters")

    results = [VerseDTO.model_validate(v) for v in quran.search_verses(query, language)]
    return SearchResponse(query=query, language=language, results=results, count=len(results))
