# backend/ruralcare/services/ai_service.py

import base64
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from openai import AsyncOpenAI
from pydantic import ValidationError

from ruralcare.core.config import settings
from ruralcare.models.assistant import (
    AIServiceStatus,
    ChatReply,
    ChatRequest,
    ImageAnalysis,
    ImageAnalysisRecord,
    MedicationAnalysis,
    MedicationCheckReply,
    MedicationCheckRequest,
    SymptomAssessment,
    SymptomCheckReply,
    SymptomCheckRequest,
    TranscriptionResult,
)
from ruralcare.services import kv_store, storage

logger = logging.getLogger(__name__)

CHAT_HISTORY_TURNS = 6

MEDICAL_AI_PROMPT = """You are an AI Health Assistant for a rural healthcare application. You provide helpful, accurate medical information while emphasizing the importance of professional medical care.

IMPORTANT GUIDELINES:
- Always encourage users to seek professional medical care for serious concerns
- Provide general health information and guidance
- For emergency symptoms, immediately advise calling emergency services
- Be empathetic and supportive
- Use clear, simple language suitable for rural populations
- Include relevant disclaimers about not replacing professional medical advice

When responding:
- For symptoms: Provide general guidance and when to seek care
- For medications: Give general information and stress consulting healthcare providers
- For emergencies: Immediately direct to emergency services
- For health education: Provide evidence-based information

Always end serious medical responses with: "This information is for educational purposes only. Please consult with a healthcare professional for proper diagnosis and treatment."
"""

SYMPTOM_SYSTEM_PROMPT = """You are a medical AI assistant for symptom assessment. Analyze the provided symptoms and respond with a JSON object containing:

{
  "symptoms": ["array of identified symptoms"],
  "severity": "emergency|high|medium|low",
  "recommendations": ["array of care recommendations"],
  "when_to_seek_care": "specific guidance on when to seek medical care",
  "red_flags": ["warning signs that require immediate attention"],
  "self_care": ["appropriate self-care measures"]
}

Base your assessment on medical knowledge while being conservative about recommending professional care. Always err on the side of safety.
"""

MEDICATION_SYSTEM_PROMPT = """You are a clinical pharmacist AI assistant. Analyze the provided medications and respond with a JSON object:

{
  "risk_level": "low|medium|high",
  "interactions": [
    {
      "drugs": "Drug A + Drug B",
      "severity": "minor|moderate|major",
      "description": "Description of interaction",
      "clinical_significance": "Clinical impact"
    }
  ],
  "recommendations": ["array of recommendations"],
  "monitoring_needed": ["what to monitor"],
  "contraindications": ["any contraindications found"]
}

Provide accurate, evidence-based medication interaction analysis. Always recommend consulting healthcare providers for medication decisions.
"""

WOUND_SYSTEM_PROMPT = """You are a medical AI assistant specializing in wound assessment. Analyze the provided wound image and provide:

1. WOUND ASSESSMENT:
   - Type of wound (cut, abrasion, burn, etc.)
   - Approximate size and depth
   - Signs of infection (redness, swelling, discharge)
   - Healing stage assessment

2. RECOMMENDATIONS:
   - Immediate care instructions
   - When to seek professional medical care
   - Warning signs to watch for

3. URGENCY LEVEL:
   - LOW: Minor wound, home care appropriate
   - MEDIUM: Monitor closely, may need professional care
   - HIGH: Requires medical attention soon
   - EMERGENCY: Seek immediate medical care

Be thorough but clear. Always emphasize that this is an assessment tool and not a substitute for professional medical evaluation.
"""

CHAT_UNAVAILABLE_TEXT = (
    "I apologize, but the AI service is currently unavailable. For urgent health concerns, "
    "please contact your healthcare provider or emergency services immediately."
)

FALLBACK_SYMPTOM_ASSESSMENT = SymptomAssessment(
    symptoms=["General symptoms reported"],
    severity="medium",
    recommendations=["Monitor symptoms closely", "Stay hydrated", "Get adequate rest"],
    when_to_seek_care="Consult a healthcare provider if symptoms persist or worsen.",
    red_flags=["High fever", "Severe pain", "Difficulty breathing"],
    self_care=["Rest", "Hydration", "Over-the-counter pain relief if appropriate"],
)

UNPARSED_SYMPTOM_ASSESSMENT = SymptomAssessment(
    symptoms=["Symptoms require evaluation"],
    severity="medium",
    recommendations=["Consult with a healthcare provider for proper assessment"],
    when_to_seek_care="Schedule an appointment with your healthcare provider.",
    red_flags=["Severe symptoms", "Rapid worsening"],
    self_care=["Monitor symptoms", "Seek medical guidance"],
)

FALLBACK_MEDICATION_ANALYSIS = MedicationAnalysis(
    risk_level="low",
    interactions=[],
    recommendations=[
        "Take medications as prescribed",
        "Consult your pharmacist about potential interactions",
        "Keep an updated medication list",
    ],
    monitoring_needed=["Regular follow-ups with healthcare provider"],
    contraindications=[],
)

UNPARSED_MEDICATION_ANALYSIS = MedicationAnalysis(
    risk_level="unknown",
    interactions=[],
    recommendations=["Consult with a pharmacist or healthcare provider for medication review"],
    monitoring_needed=["Professional medication review recommended"],
    contraindications=[],
)

_client: Optional[AsyncOpenAI] = None


class AIServiceNotConfigured(RuntimeError):
    pass


def is_configured() -> bool:
    return bool(settings.OPENAI_API_KEY)


def _get_openai_client() -> AsyncOpenAI:
    global _client
    if not is_configured():
        raise AIServiceNotConfigured("OpenAI API key not configured")
    if _client is None:
        _client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL)
    return _client


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _powered_by(live: str, fallback: str) -> str:
    return live if is_configured() else fallback


async def call_openai(
    messages: List[Dict[str, Any]],
    temperature: float = 0.7,
    max_tokens: int = 1000,
    model: Optional[str] = None,
    json_mode: bool = False,
) -> str:
    client = _get_openai_client()
    kwargs: Dict[str, Any] = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    completion = await client.chat.completions.create(
        model=model or settings.OPENAI_CHAT_MODEL,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
        **kwargs,
    )
    return completion.choices[0].message.content or ""


def _chat_error_message(error: Exception) -> str:
    text = str(error)
    if "API key" in text:
        return "AI service configuration issue. Please contact support or use alternative health resources."
    if "quota" in text:
        return (
            "AI service temporarily at capacity. Please try again in a few minutes "
            "or contact healthcare providers directly."
        )
    if "network" in text or "connection" in text.lower():
        return "Network connectivity issue. Please check your connection and try again."
    return (
        "I apologize, but I'm having trouble processing your request right now. "
        "For urgent health concerns, please contact your healthcare provider immediately."
    )


async def chat_reply(request: ChatRequest) -> ChatReply:
    context = request.user_context
    messages: List[Dict[str, Any]] = [{"role": "system", "content": MEDICAL_AI_PROMPT}]
    for turn in request.conversation_history[-CHAT_HISTORY_TURNS:]:
        messages.append({"role": turn.role, "content": turn.content})
    messages.append(
        {
            "role": "user",
            "content": (
                f"User context: {(context and context.role) or 'patient'} named {(context and context.name) or 'User'}"
                f"\n\nMessage: {request.message}"
            ),
        }
    )

    if not is_configured():
        logger.info("OpenAI API key not available, using fallback chat reply")
        return ChatReply(response=CHAT_UNAVAILABLE_TEXT, timestamp=_timestamp(), powered_by="Fallback Response")

    try:
        response = await call_openai(messages)
        return ChatReply(response=response, timestamp=_timestamp(), powered_by="OpenAI")
    except Exception as e:
        logger.error("AI chat failed: %s", e)
        return ChatReply(
            response=_chat_error_message(e),
            timestamp=_timestamp(),
            error=True,
            error_details=str(e),
        )


async def assess_symptoms(request: SymptomCheckRequest) -> SymptomCheckReply:
    if not is_configured():
        return SymptomCheckReply(
            assessment=FALLBACK_SYMPTOM_ASSESSMENT, timestamp=_timestamp(), powered_by="Local Assessment"
        )

    context = request.user_context
    messages = [
        {"role": "system", "content": SYMPTOM_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                f"Patient symptoms: {request.symptoms}\n"
                f"Duration: {request.duration or 'Not specified'}\n"
                f"Pain/Severity level (1-10): {request.severity or 'Not specified'}\n"
                f"Patient context: {(context and context.role) or 'patient'}"
            ),
        },
    ]
    text = await call_openai(messages, temperature=0.3, max_tokens=1000, json_mode=True)
    try:
        assessment = SymptomAssessment.model_validate_json(text)
    except ValidationError:
        logger.error("Failed to parse symptom assessment JSON: %s", text)
        assessment = UNPARSED_SYMPTOM_ASSESSMENT
    return SymptomCheckReply(assessment=assessment, timestamp=_timestamp(), powered_by="OpenAI")


async def check_medications(request: MedicationCheckRequest) -> MedicationCheckReply:
    if not is_configured():
        return MedicationCheckReply(
            analysis=FALLBACK_MEDICATION_ANALYSIS, timestamp=_timestamp(), powered_by="Basic Analysis"
        )

    context = request.user_context
    messages = [
        {"role": "system", "content": MEDICATION_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                f"Medications to analyze: {', '.join(request.medications)}\n"
                f"Patient context: {(context and context.role) or 'patient'}"
            ),
        },
    ]
    text = await call_openai(messages, temperature=0.2, max_tokens=1200, json_mode=True)
    try:
        analysis = MedicationAnalysis.model_validate_json(text)
    except ValidationError:
        logger.error("Failed to parse medication analysis JSON: %s", text)
        analysis = UNPARSED_MEDICATION_ANALYSIS
    return MedicationCheckReply(analysis=analysis, timestamp=_timestamp(), powered_by="OpenAI")


async def analyze_wound_image(image: bytes, content_type: str) -> str:
    data_url = f"data:{content_type};base64,{base64.b64encode(image).decode('ascii')}"
    messages = [
        {"role": "system", "content": WOUND_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": "Please analyze this wound image and provide your assessment."},
                {"type": "image_url", "image_url": {"url": data_url}},
            ],
        },
    ]
    return await call_openai(messages, temperature=0.3, max_tokens=1500, model=settings.OPENAI_VISION_MODEL)


async def analyze_image(
    user_id: str, filename: str, image: bytes, content_type: str, analysis_type: str
) -> ImageAnalysis:
    path = f"{user_id}/{uuid4()}-{filename}"
    storage.upload(storage.MEDICAL_IMAGES_BUCKET, path, image, content_type)
    image_url = storage.create_signed_url(storage.MEDICAL_IMAGES_BUCKET, path)

    if is_configured() and analysis_type == "wound":
        try:
            analysis = await analyze_wound_image(image, content_type)
        except Exception as e:
            logger.error("Image analysis failed: %s", e)
            analysis = (
                "I apologize, but I'm unable to analyze this image at the moment. "
                "Please consult with a healthcare professional for proper wound assessment."
            )
    else:
        analysis = (
            f"Image uploaded successfully. For {analysis_type} analysis, please consult with a healthcare "
            "professional who can provide proper visual assessment and recommendations."
        )

    record = ImageAnalysisRecord(
        id=str(uuid4()),
        user_id=user_id,
        image_path=path,
        image_url=image_url,
        analysis_type=analysis_type,
        analysis_result=analysis,
        created_at=_timestamp(),
    )
    kv_store.set(f"image_analysis:{record.id}", record.model_dump())

    return ImageAnalysis(
        analysis_id=record.id,
        analysis=analysis,
        image_url=image_url,
        timestamp=record.created_at,
        powered_by=_powered_by("OpenAI Vision", "Basic Analysis"),
    )


def image_history(user_id: str) -> List[ImageAnalysisRecord]:
    records = [ImageAnalysisRecord.model_validate(item) for item in kv_store.get_by_prefix("image_analysis:")]
    return [record for record in records if record.user_id == user_id]


# STT and TTS helpers
async def speech_to_text(audio_bytes: bytes, filename: str = "segment.wav", content_type: str = "audio/wav") -> str:
    """Convert speech to text using OpenAI Whisper. Silence comes back as an empty string."""
    client = _get_openai_client()
    transcript = await client.audio.transcriptions.create(
        model=settings.OPENAI_TRANSCRIBE_MODEL,
        file=(filename, audio_bytes, content_type),
    )
    return transcript.text or ""


async def transcribe_segment(
    user_id: str, audio_bytes: bytes, filename: str, content_type: str
) -> TranscriptionResult:
    if is_configured():
        try:
            text = await speech_to_text(audio_bytes, filename, content_type)
        except Exception as e:
            logger.error("Transcription failed: %s", e)
            return TranscriptionResult(
                transcription="Unable to transcribe audio. Please try typing your message.",
                error=True,
            )
        powered_by = "OpenAI Whisper"
    else:
        text = "Voice transcription service is currently unavailable. Please try typing your message instead."
        powered_by = "Local Processing"

    record_id = str(uuid4())
    timestamp = _timestamp()
    kv_store.set(
        f"transcription:{record_id}",
        {"id": record_id, "user_id": user_id, "transcription": text, "created_at": timestamp},
    )
    return TranscriptionResult(
        transcription=text,
        transcription_id=record_id,
        timestamp=timestamp,
        powered_by=powered_by,
        error=not is_configured(),
    )


async def text_to_speech(text: str) -> bytes:
    """Convert text to speech using OpenAI TTS"""
    try:
        client = _get_openai_client()
        async with client.audio.speech.with_streaming_response.create(
            model=settings.OPENAI_TTS_MODEL,
            voice=settings.OPENAI_TTS_VOICE,
            input=text,
            response_format="wav",
        ) as resp:
            audio_bytes = await resp.read()
        if not audio_bytes or len(audio_bytes) < 44:
            raise RuntimeError(f"Invalid audio: {len(audio_bytes)} bytes")
        return audio_bytes
    except Exception as e:
        logger.error("TTS failed: %s", e)
        return b""


async def translate_text(text: str, target_language: str, source_language: str = "en") -> str:
    if not is_configured() or target_language == source_language:
        return text
    messages = [
        {
            "role": "system",
            "content": (
                "You are a medical translator. Translate the user's text from the language with code "
                f"'{source_language}' into the language with code '{target_language}'. "
                "Reply with the translation only."
            ),
        },
        {"role": "user", "content": text},
    ]
    try:
        translated = await call_openai(messages, temperature=0.1, max_tokens=1000)
        return translated.strip() or text
    except Exception as e:
        logger.error("Translation failed: %s", e)
        return text


async def probe() -> AIServiceStatus:
    if not is_configured():
        return AIServiceStatus(api_key_configured=False, test_result="API key not configured", timestamp=_timestamp())
    try:
        result = await call_openai(
            [{"role": "user", "content": 'Respond with just "API working" if you can see this message.'}]
        )
    except Exception as e:
        result = f"API error: {e}"
    return AIServiceStatus(api_key_configured=True, test_result=result, timestamp=_timestamp())
