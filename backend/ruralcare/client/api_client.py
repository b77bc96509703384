# backend/ruralcare/client/api_client.py

import logging
from typing import Dict, List, Optional

import httpx
from pydantic import ValidationError

from ruralcare.client.errors import ServiceError, ServiceTimeout, ServiceUnavailable
from ruralcare.core.config import Settings, settings as default_settings
from ruralcare.models.assistant import (
    AIServiceStatus,
    ChatReply,
    ChatRequest,
    ChatTurn,
    ImageAnalysis,
    ImageAnalysisRecord,
    MedicationCheckReply,
    MedicationCheckRequest,
    SymptomCheckReply,
    SymptomCheckRequest,
    TranscriptionResult,
    TranslationResult,
    UserContext,
)
from ruralcare.models.auth import AuthSession
from ruralcare.models.session import UserProfile, UserRole

logger = logging.getLogger(__name__)

CHAT = "chat"
TRANSCRIPTION = "transcription"
SUMMARY = "summary"
DEFAULT = "default"


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("detail", "error", "message"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return response.text.strip() or f"HTTP {response.status_code}"


class RuralCareClient:
    """
    Async HTTP client for the RuralCare backend.

    Every call belongs to a call class with its own timeout. Timeouts,
    transport failures and 5xx answers are retried REQUEST_RETRIES times;
    4xx answers are not. A 401 is reported as ServiceUnavailable.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or default_settings
        self.access_token: Optional[str] = None
        self._timeouts = {
            CHAT: self.config.CHAT_TIMEOUT_SECONDS,
            TRANSCRIPTION: self.config.TRANSCRIBE_TIMEOUT_SECONDS,
            SUMMARY: self.config.SUMMARY_TIMEOUT_SECONDS,
            DEFAULT: self.config.DEFAULT_TIMEOUT_SECONDS,
        }
        self._http = httpx.AsyncClient(
            base_url=base_url or self.config.API_BASE_URL,
            transport=transport,
            timeout=self.config.DEFAULT_TIMEOUT_SECONDS,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "RuralCareClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        token = token or self.access_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(self, call_class: str, method: str, path: str, **kwargs) -> httpx.Response:
        attempts = 1 + max(self.config.REQUEST_RETRIES, 0)
        timeout = self._timeouts.get(call_class, self.config.DEFAULT_TIMEOUT_SECONDS)
        last_error: Optional[ServiceError] = None

        for attempt in range(1, attempts + 1):
            try:
                response = await self._http.request(method, path, timeout=timeout, **kwargs)
            except httpx.TimeoutException as exc:
                logger.warning("%s %s timed out (attempt %d/%d)", method, path, attempt, attempts)
                last_error = ServiceTimeout(f"{call_class} request timed out")
                last_error.__cause__ = exc
                continue
            except httpx.TransportError as exc:
                logger.warning("%s %s failed: %s (attempt %d/%d)", method, path, exc, attempt, attempts)
                last_error = ServiceUnavailable(f"{call_class} request failed: {exc}")
                last_error.__cause__ = exc
                continue

            if response.status_code >= 500:
                logger.warning(
                    "%s %s returned %d (attempt %d/%d)", method, path, response.status_code, attempt, attempts
                )
                last_error = ServiceUnavailable(_error_detail(response), response.status_code)
                continue
            if response.status_code == 401:
                raise ServiceUnavailable(_error_detail(response), response.status_code)
            if response.status_code >= 400:
                raise ServiceError(_error_detail(response), response.status_code)
            return response

        raise last_error

    async def _json(self, call_class: str, method: str, path: str, model=None, **kwargs):
        response = await self._request(call_class, method, path, **kwargs)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ServiceError(f"Invalid JSON from {path}", response.status_code) from exc
        if model is None:
            return payload
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise ServiceError(f"Unexpected response from {path}", response.status_code) from exc

    # Auth

    async def sign_up(
        self, email: str, password: str, name: str, role: UserRole, phone: Optional[str] = None
    ) -> UserProfile:
        body = {"email": email, "password": password, "name": name, "role": role.value, "phone": phone}
        payload = await self._json(DEFAULT, "POST", "/auth/signup", json=body)
        return UserProfile.model_validate(payload["profile"])

    async def sign_in(self, email: str, password: str) -> AuthSession:
        body = {"email": email, "password": password}
        return await self._json(DEFAULT, "POST", "/auth/signin", AuthSession, json=body)

    async def sign_out(self, token: Optional[str] = None) -> None:
        await self._request(DEFAULT, "POST", "/auth/signout", headers=self._headers(token))

    async def get_profile(self, token: Optional[str] = None) -> UserProfile:
        payload = await self._json(DEFAULT, "GET", "/auth/profile", headers=self._headers(token))
        return UserProfile.model_validate(payload["profile"])

    # AI

    async def chat(
        self,
        message: str,
        user_context: Optional[UserContext] = None,
        history: Optional[List[ChatTurn]] = None,
        call_class: str = CHAT,
    ) -> ChatReply:
        request = ChatRequest(message=message, user_context=user_context, conversation_history=history or [])
        return await self._json(call_class, "POST", "/ai/chat", ChatReply, json=request.model_dump(mode="json"))

    async def check_symptoms(
        self, symptoms: str, duration: str = "", severity: str = "", user_context: Optional[UserContext] = None
    ) -> SymptomCheckReply:
        request = SymptomCheckRequest(
            symptoms=symptoms, duration=duration or None, severity=severity or None, user_context=user_context
        )
        return await self._json(
            DEFAULT, "POST", "/ai/symptom-checker", SymptomCheckReply, json=request.model_dump(mode="json")
        )

    async def check_medications(
        self, medications: List[str], user_context: Optional[UserContext] = None
    ) -> MedicationCheckReply:
        request = MedicationCheckRequest(medications=medications, user_context=user_context)
        return await self._json(
            DEFAULT, "POST", "/ai/medication-checker", MedicationCheckReply, json=request.model_dump(mode="json")
        )

    async def analyze_image(
        self, filename: str, content: bytes, content_type: str, analysis_type: str
    ) -> ImageAnalysis:
        return await self._json(
            DEFAULT,
            "POST",
            "/ai/analyze-image",
            ImageAnalysis,
            headers=self._headers(),
            files={"image": (filename, content, content_type)},
            data={"type": analysis_type},
        )

    async def image_history(self) -> List[ImageAnalysisRecord]:
        payload = await self._json(DEFAULT, "GET", "/ai/image-history", headers=self._headers())
        return [ImageAnalysisRecord.model_validate(item) for item in payload.get("analyses", [])]

    async def transcribe(
        self, audio: bytes, filename: str = "segment.wav", content_type: str = "audio/webm"
    ) -> TranscriptionResult:
        return await self._json(
            TRANSCRIPTION,
            "POST",
            "/ai/transcribe",
            TranscriptionResult,
            headers=self._headers(),
            files={"audio": (filename, audio, content_type)},
        )

    async def text_to_speech(self, text: str, language: Optional[str] = None) -> bytes:
        response = await self._request(DEFAULT, "POST", "/ai/text-to-speech", json={"text": text, "language": language})
        return response.content

    async def translate(self, text: str, target_language: str, source_language: str = "en") -> str:
        body = {"text": text, "target_language": target_language, "source_language": source_language}
        result = await self._json(DEFAULT, "POST", "/ai/translate", TranslationResult, json=body)
        return result.translated_text

    async def test_ai(self) -> AIServiceStatus:
        return await self._json(DEFAULT, "GET", "/ai/test", AIServiceStatus)
