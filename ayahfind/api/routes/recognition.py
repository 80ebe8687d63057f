"""
Recitation recognition endpoint.
"""
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from ayahfind.core.auth_dependency import (
    Identity,
    extract_device_id,
    get_db,
    optional_auth,
)
from ayahfind.llm.provider import RecognitionProvider
from ayahfind.schemas.recognition import RecognitionResponse
from ayahfind.services import recognition_service
from ayahfind.services.quran_service import QuranService, get_quran_service

router = APIRouter(tags=["Recognition"])


@router.post("/recognize", response_model=RecognitionResponse)
def recognize(
    audio: Optional[UploadFile] = File(None),
    identity: Optional[Identity] = Depends(optional_auth),
    device_id: Optional[str] = Depends(extract_device_id),
    db: Session = Depends(get_db),
    provider: RecognitionProvider = Depends(recognition_service.get_recognition_provider),
    quran: QuranService = Depends(get_quran_service),
):
    """
    Identify the verse recited in an uploaded audio clip.

    Counts against the caller's daily quota only when a verse is found.
    """
    user_id = identity.user_id if identity else None
    # One byte past the limit is enough for the size check to reject the upload
    data = audio.file.read(recognition_service.MAX_AUDIO_SIZE_BYTES + 1) if audio else b""
    outcome = recognition_service.recognize(
        db,
        provider,
        quran,
        data,
        (audio.filename if audio else None) or "audio.m4a",
        audio.content_type if audio else None,
        user_id=user_id,
        device_id=device_id,
    )
    return RecognitionResponse.model_validate(asdict(outcome))
