# backend/ruralcare/models/consultation.py

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class Speaker(str, Enum):
    USER = "user"
    AI = "ai"
    DOCTOR = "doctor"
    PATIENT = "patient"


class ConsultationType(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"


class PermissionState(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    REQUESTING = "requesting"
    GRANTED = "granted"
    DENIED = "denied"
    UNAVAILABLE = "unavailable"


class TranscriptionStatus(str, Enum):
    IDLE = "idle"
    OK = "ok"
    UNAVAILABLE = "unavailable"


class TranscriptionSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    speaker: Speaker
    text: str
    timestamp: datetime = Field(default_factory=datetime.now)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    sequence: Optional[int] = None


class ConsultationSession(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    start_time: datetime = Field(default_factory=datetime.now)
    duration: int = 0
    transcription: List[TranscriptionSegment] = []
    summary: Optional[str] = None

    def append(self, segment: TranscriptionSegment) -> None:
        self.transcription.append(segment)

    def transcript_lines(self) -> str:
        return "\n".join(f"{seg.speaker.value}: {seg.text}" for seg in self.transcription)
