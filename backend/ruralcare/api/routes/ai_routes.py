# backend/ruralcare/api/routes/ai_routes.py

import logging
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from ruralcare.api.deps import get_current_user
from ruralcare.models.assistant import (
    AIServiceStatus,
    ChatReply,
    ChatRequest,
    ImageAnalysis,
    ImageAnalysisRecord,
    MedicationCheckReply,
    MedicationCheckRequest,
    SpeechRequest,
    SymptomCheckReply,
    SymptomCheckRequest,
    TranscriptionResult,
    TranslationRequest,
    TranslationResult,
)
from ruralcare.models.session import UserProfile
from ruralcare.services import ai_service
from ruralcare.services.storage import StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])

IMAGE_ANALYSIS_TYPES = ("wound", "skin", "rash")


@router.post("/chat", response_model=ChatReply)
async def ai_chat(request: ChatRequest):
    logger.info(
        "AI chat called: message=%r history=%d", request.message[:100], len(request.conversation_history)
    )
    return await ai_service.chat_reply(request)


@router.post("/symptom-checker", response_model=SymptomCheckReply)
async def symptom_checker(request: SymptomCheckRequest):
    try:
        return await ai_service.assess_symptoms(request)
    except Exception as e:
        logger.error("Symptom checker error: %s", e)
        raise HTTPException(status_code=500, detail="Symptom analysis temporarily unavailable")


@router.post("/medication-checker", response_model=MedicationCheckReply)
async def medication_checker(request: MedicationCheckRequest):
    try:
        return await ai_service.check_medications(request)
    except Exception as e:
        logger.error("Medication checker error: %s", e)
        raise HTTPException(status_code=500, detail="Medication analysis temporarily unavailable")


@router.post("/analyze-image", response_model=ImageAnalysis)
async def analyze_image(
    image: UploadFile = File(...),
    type: str = Form("wound"),
    user: UserProfile = Depends(get_current_user),
):
    if type not in IMAGE_ANALYSIS_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported analysis type: {type}")

    content = await image.read()
    if not content:
        raise HTTPException(status_code=400, detail="No image file provided")

    try:
        return await ai_service.analyze_image(
            user.id, image.filename or "image", content, image.content_type or "image/jpeg", type
        )
    except StorageError as e:
        logger.error("Image upload error: %s", e)
        raise HTTPException(status_code=500, detail="Failed to upload image")


@router.get("/image-history")
async def image_history(user: UserProfile = Depends(get_current_user)):
    analyses: List[ImageAnalysisRecord] = ai_service.image_history(user.id)
    return {"analyses": [record.model_dump() for record in analyses]}


@router.post("/transcribe", response_model=TranscriptionResult)
async def transcribe(
    audio: UploadFile = File(...),
    user: UserProfile = Depends(get_current_user),
):
    """
    Transcribe one recorded segment. Provider failures are reported in the
    body with error=true rather than as an HTTP error.
    """
    audio_bytes = await audio.read()
    if not audio_bytes:
        raise HTTPException(status_code=400, detail="No audio file provided")

    return await ai_service.transcribe_segment(
        user.id, audio_bytes, audio.filename or "segment.wav", audio.content_type or "audio/wav"
    )


@router.post("/text-to-speech")
async def text_to_speech(request: SpeechRequest):
    tts_bytes = await ai_service.text_to_speech(request.text)
    return Response(content=tts_bytes, media_type="audio/wav")


@router.post("/translate", response_model=TranslationResult)
async def translate(request: TranslationRequest):
    translated = await ai_service.translate_text(request.text, request.target_language, request.source_language)
    return TranslationResult(translated_text=translated)


@router.get("/test", response_model=AIServiceStatus)
async def ai_test():
    return await ai_service.probe()
