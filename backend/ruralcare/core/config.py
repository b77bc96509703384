import os
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "y")


class Settings(BaseSettings):
    """Runtime settings shared by the backend and the application core."""

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # OpenAI Configuration
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    OPENAI_CHAT_MODEL: str = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
    OPENAI_VISION_MODEL: str = os.getenv("OPENAI_VISION_MODEL", "gpt-4o-mini")
    OPENAI_TRANSCRIBE_MODEL: str = os.getenv("OPENAI_TRANSCRIBE_MODEL", "whisper-1")
    OPENAI_TTS_MODEL: str = os.getenv("OPENAI_TTS_MODEL", "gpt-4o-mini-tts")
    OPENAI_TTS_VOICE: str = os.getenv("OPENAI_TTS_VOICE", "alloy")

    # Backend
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
    STORAGE_SIGNING_SECRET: str = os.getenv("STORAGE_SIGNING_SECRET", "change-me")
    SIGNED_URL_TTL_SECONDS: int = int(os.getenv("SIGNED_URL_TTL_SECONDS", "3600"))
    SEED_DEMO_USERS: bool = _env_bool("SEED_DEMO_USERS", "true")

    # Application core
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8000")
    DEFAULT_TIMEOUT_SECONDS: float = float(os.getenv("DEFAULT_TIMEOUT_SECONDS", "15"))
    CHAT_TIMEOUT_SECONDS: float = float(os.getenv("CHAT_TIMEOUT_SECONDS", "30"))
    TRANSCRIBE_TIMEOUT_SECONDS: float = float(os.getenv("TRANSCRIBE_TIMEOUT_SECONDS", "20"))
    SUMMARY_TIMEOUT_SECONDS: float = float(os.getenv("SUMMARY_TIMEOUT_SECONDS", "60"))
    REQUEST_RETRIES: int = int(os.getenv("REQUEST_RETRIES", "1"))

    SEGMENT_SECONDS: float = float(os.getenv("SEGMENT_SECONDS", "3.0"))
    SEGMENT_RESTART_DELAY_SECONDS: float = float(os.getenv("SEGMENT_RESTART_DELAY_SECONDS", "0.1"))
    DURATION_TICK_SECONDS: float = float(os.getenv("DURATION_TICK_SECONDS", "1.0"))
    ORDER_TRANSCRIPTS_BY_CAPTURE: bool = _env_bool("ORDER_TRANSCRIPTS_BY_CAPTURE", "true")
    SURFACE_TRANSCRIPTION_ERRORS: bool = _env_bool("SURFACE_TRANSCRIPTION_ERRORS", "false")

    PREFERENCES_PATH: str = os.getenv(
        "PREFERENCES_PATH", os.path.join(os.path.expanduser("~"), ".ruralcare", "preferences.json")
    )

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    class Config:
        case_sensitive = True


settings = Settings()
