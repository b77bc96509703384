"""Pydantic models shared by the backend and the application core."""

from .assistant import (
    AIServiceStatus,
    ChatMessage,
    ChatReply,
    ChatRequest,
    ChatTurn,
    ConnectionStatus,
    DrugInteraction,
    ImageAnalysis,
    ImageAnalysisRecord,
    MedicationAnalysis,
    MedicationCheckReply,
    MedicationCheckRequest,
    MessageRole,
    MessageType,
    SpeechRequest,
    SymptomAssessment,
    SymptomCheckReply,
    SymptomCheckRequest,
    TranscriptionResult,
    TranslationRequest,
    TranslationResult,
    UserContext,
)
from .auth import AuthSession, SigninRequest, SignupRequest
from .consultation import (
    ConsultationSession,
    ConsultationType,
    PermissionState,
    Speaker,
    TranscriptionSegment,
    TranscriptionStatus,
)
from .session import AppSession, Screen, UserProfile, UserRole

__all__ = [
    "AIServiceStatus",
    "AppSession",
    "AuthSession",
    "ChatMessage",
    "ChatReply",
    "ChatRequest",
    "ChatTurn",
    "ConnectionStatus",
    "ConsultationSession",
    "ConsultationType",
    "DrugInteraction",
    "ImageAnalysis",
    "ImageAnalysisRecord",
    "MedicationAnalysis",
    "MedicationCheckReply",
    "MedicationCheckRequest",
    "MessageRole",
    "MessageType",
    "PermissionState",
    "Screen",
    "SigninRequest",
    "SignupRequest",
    "Speaker",
    "SpeechRequest",
    "SymptomAssessment",
    "SymptomCheckReply",
    "SymptomCheckRequest",
    "TranscriptionResult",
    "TranscriptionSegment",
    "TranscriptionStatus",
    "TranslationRequest",
    "TranslationResult",
    "UserContext",
    "UserProfile",
    "UserRole",
]
