# backend/ruralcare/models/assistant.py

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MessageType(str, Enum):
    TEXT = "text"
    SYMPTOM_ANALYSIS = "symptom-analysis"
    MEDICATION_INFO = "medication-info"
    EMERGENCY_GUIDANCE = "emergency-guidance"
    IMAGE_ANALYSIS = "image-analysis"
    ERROR = "error"


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    TESTING = "testing"


class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)
    type: MessageType = MessageType.TEXT
    image_url: Optional[str] = None
    analysis_id: Optional[str] = None
    error: bool = False


class ChatTurn(BaseModel):
    role: str
    content: str


class UserContext(BaseModel):
    role: Optional[str] = None
    name: Optional[str] = None
    consultation_type: Optional[str] = None


class ChatRequest(BaseModel):
    message: str
    user_context: Optional[UserContext] = None
    conversation_history: List[ChatTurn] = []


class ChatReply(BaseModel):
    response: str
    type: MessageType = MessageType.TEXT
    timestamp: Optional[str] = None
    powered_by: Optional[str] = None
    error: bool = False
    error_details: Optional[str] = None


class SymptomCheckRequest(BaseModel):
    symptoms: str
    duration: Optional[str] = None
    severity: Optional[str] = None
    user_context: Optional[UserContext] = None


class SymptomAssessment(BaseModel):
    symptoms: List[str] = []
    severity: str = "medium"
    recommendations: List[str] = []
    when_to_seek_care: str = ""
    red_flags: List[str] = []
    self_care: List[str] = []


class SymptomCheckReply(BaseModel):
    assessment: SymptomAssessment
    timestamp: Optional[str] = None
    powered_by: Optional[str] = None


class MedicationCheckRequest(BaseModel):
    medications: List[str]
    user_context: Optional[UserContext] = None


class DrugInteraction(BaseModel):
    drugs: str
    severity: str = "minor"
    description: str = ""
    clinical_significance: Optional[str] = None


class MedicationAnalysis(BaseModel):
    risk_level: str = "low"
    interactions: List[DrugInteraction] = []
    recommendations: List[str] = []
    monitoring_needed: List[str] = []
    contraindications: List[str] = []


class MedicationCheckReply(BaseModel):
    analysis: MedicationAnalysis
    timestamp: Optional[str] = None
    powered_by: Optional[str] = None


class ImageAnalysis(BaseModel):
    analysis_id: str
    analysis: str
    image_url: str
    timestamp: Optional[str] = None
    powered_by: Optional[str] = None


class ImageAnalysisRecord(BaseModel):
    id: str
    user_id: str
    image_path: str
    image_url: str
    analysis_type: str
    analysis_result: str
    created_at: str


class TranscriptionResult(BaseModel):
    transcription: str = ""
    transcription_id: Optional[str] = None
    confidence: Optional[float] = None
    timestamp: Optional[str] = None
    powered_by: Optional[str] = None
    error: bool = False


class AIServiceStatus(BaseModel):
    api_key_configured: bool
    test_result: str
    timestamp: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.api_key_configured and "API working" in self.test_result


class TranslationRequest(BaseModel):
    text: str
    target_language: str
    source_language: str = "en"


class TranslationResult(BaseModel):
    translated_text: str


class SpeechRequest(BaseModel):
    text: str
    language: Optional[str] = None
