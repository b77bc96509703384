# backend/ruralcare/client/translation.py

import json
import logging
import os
import re
from typing import Dict, Optional, Tuple, Union

from pydantic import BaseModel

from ruralcare.client.api_client import RuralCareClient
from ruralcare.client.errors import ServiceError
from ruralcare.core.config import settings

logger = logging.getLogger(__name__)

PREFERRED_LANGUAGE_KEY = "preferred_language"


class Language(BaseModel):
    code: str
    name: str
    native_name: str


SUPPORTED_LANGUAGES = [
    Language(code="en", name="English", native_name="English"),
    Language(code="zu", name="Zulu", native_name="isiZulu"),
    Language(code="xh", name="Xhosa", native_name="isiXhosa"),
    Language(code="af", name="Afrikaans", native_name="Afrikaans"),
    Language(code="st", name="Sotho", native_name="Sesotho"),
    Language(code="sw", name="Swahili", native_name="Kiswahili"),
    Language(code="fr", name="French", native_name="Français"),
    Language(code="pt", name="Portuguese", native_name="Português"),
]

# Common medical and navigation phrases, keyed by snake_case
TRANSLATION_DICTIONARY: Dict[str, Dict[str, str]] = {
    "en": {
        "hello": "Hello",
        "welcome": "Welcome",
        "health": "Health",
        "doctor": "Doctor",
        "patient": "Patient",
        "appointment": "Appointment",
        "symptoms": "Symptoms",
        "medicine": "Medicine",
        "emergency": "Emergency",
        "clinic": "Clinic",
        "consultation": "Consultation",
        "voice_consultation": "Voice Consultation",
        "ai_assistant": "AI Health Assistant",
        "describe_symptoms": "Please describe your symptoms",
        "listening": "Listening...",
        "processing": "Processing...",
        "microphone_access": "Microphone access required",
    },
    "zu": {
        "hello": "Sawubona",
        "welcome": "Siyakwamukela",
        "health": "Impilo",
        "doctor": "Udokotela",
        "patient": "Isiguli",
        "appointment": "Isikhathi sokubonana",
        "symptoms": "Izimpawu",
        "medicine": "Umuthi",
        "emergency": "Isimo esiphuthumayo",
        "clinic": "Umtholampilo",
        "consultation": "Ukuhlolwa",
        "voice_consultation": "Ukuhlolwa Ngezwi",
        "ai_assistant": "Umsizi we-AI Wezempilo",
        "describe_symptoms": "Sicela uchaze izimpawu zakho",
        "listening": "Ngilalele...",
        "processing": "Ngicubungula...",
        "microphone_access": "Kudingeka ukufinyelela kwemakrofoni",
    },
    "xh": {
        "hello": "Molo",
        "welcome": "Wamkelekile",
        "health": "Impilo",
        "doctor": "Ugqirha",
        "patient": "Isigulana",
        "appointment": "Idinga",
        "symptoms": "Iimpawu",
        "medicine": "Iyeza",
        "emergency": "Ingxaki ebukhali",
        "clinic": "Iklinikhi",
        "consultation": "Ukubonana",
        "voice_consultation": "Ukubonana Ngelizwi",
        "ai_assistant": "Umncedisi we-AI Wezempilo",
        "describe_symptoms": "Nceda chaza iimpawu zakho",
        "listening": "Ndimamele...",
        "processing": "Ndicwangcisa...",
        "microphone_access": "Kufuneka ufikelelo kwimakrofoni",
    },
}


def dictionary_key(text: str) -> str:
    return re.sub(r"\s+", "_", text.strip().lower())


def find_language(code: str) -> Optional[Language]:
    for language in SUPPORTED_LANGUAGES:
        if language.code == code:
            return language
    return None


class PreferenceStore:
    """Small JSON file holding client-side preferences."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or settings.PREFERENCES_PATH

    def _load(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Could not read preferences from %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)


class TranslationContext:
    """
    Current language plus translation helpers for the rest of the core.

    `translate_text` is a synchronous dictionary lookup; `translate` goes
    cache -> dictionary -> backend and falls back to the original text.
    Cache entries live for the lifetime of the context.
    """

    def __init__(self, api: Optional[RuralCareClient] = None, preferences: Optional[PreferenceStore] = None):
        self.api = api
        self.preferences = preferences
        self.current_language = SUPPORTED_LANGUAGES[0]
        self.is_translating = False
        self._cache: Dict[Tuple[str, str], str] = {}

        if preferences is not None:
            saved = preferences.get(PREFERRED_LANGUAGE_KEY)
            language = find_language(saved) if saved else None
            if language is not None:
                self.current_language = language

    def set_language(self, language: Union[Language, str]) -> None:
        if isinstance(language, str):
            found = find_language(language)
            if found is None:
                raise ValueError(f"Unsupported language: {language}")
            language = found
        self.current_language = language
        if self.preferences is not None:
            try:
                self.preferences.set(PREFERRED_LANGUAGE_KEY, language.code)
            except OSError as e:
                logger.warning("Could not persist language preference: %s", e)

    def _lookup(self, text: str, language_code: str) -> Optional[str]:
        return TRANSLATION_DICTIONARY.get(language_code, {}).get(dictionary_key(text))

    def translate_text(self, text: str) -> str:
        """Dictionary lookup in the current language; unknown phrases come back unchanged."""
        return self._lookup(text, self.current_language.code) or text

    async def translate(self, text: str, target_language: Optional[str] = None) -> str:
        target = target_language or self.current_language.code
        if target == "en":
            return text

        local = self._lookup(text, target) or self._cache.get((text, target))
        if local:
            return local
        if self.api is None:
            return text

        self.is_translating = True
        try:
            translated = await self.api.translate(text, target, "en")
        except ServiceError as e:
            logger.error("Translation error: %s", e)
            return text
        finally:
            self.is_translating = False

        translated = translated or text
        self._cache[(text, target)] = translated
        return translated

    async def speech_to_text(self, audio: bytes, content_type: str = "audio/webm") -> str:
        if self.api is None:
            return ""
        try:
            result = await self.api.transcribe(audio, content_type=content_type)
        except ServiceError as e:
            logger.error("Speech to text error: %s", e)
            return ""
        return "" if result.error else result.transcription

    async def text_to_speech(self, text: str) -> bytes:
        if self.api is None:
            return b""
        try:
            return await self.api.text_to_speech(text, self.current_language.code)
        except ServiceError as e:
            logger.error("Text to speech error: %s", e)
            return b""
