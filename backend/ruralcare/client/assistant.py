# backend/ruralcare/client/assistant.py

import logging
from typing import List, Optional

from pydantic import BaseModel

from ruralcare.client.api_client import RuralCareClient
from ruralcare.client.errors import InputValidationError, ServiceError
from ruralcare.client.screen import AlertHandler, ScreenController, require_text
from ruralcare.models.assistant import (
    ChatMessage,
    ChatTurn,
    ConnectionStatus,
    ImageAnalysisRecord,
    MedicationAnalysis,
    MessageRole,
    MessageType,
    SymptomAssessment,
    UserContext,
)
from ruralcare.models.session import UserProfile

logger = logging.getLogger(__name__)

CHAT_HISTORY_MESSAGES = 6

TABS = ("chat", "symptoms", "medications", "imaging", "emergency")
ONLINE_ONLY_TABS = ("symptoms", "medications", "imaging")

CONNECTION_ERROR_TEXT = (
    "I'm having trouble connecting to the AI service right now. For urgent health concerns, please contact "
    "your healthcare provider or emergency services immediately.\n\n"
    "I can still provide basic health information in offline mode. "
    "Would you like me to help with general health questions?"
)

EMERGENCY_KEYWORDS = ("emergency", "urgent", "chest pain", "cant breathe", "can't breathe", "bleeding")
SYMPTOM_KEYWORDS = ("symptom", "pain", "fever", "headache")
MEDICATION_KEYWORDS = ("medication", "drug")

OFFLINE_EMERGENCY_RESPONSE = (
    "This sounds like a medical emergency!\n\n"
    "**CALL 911 IMMEDIATELY**\n\n"
    "For emergency services:\n"
    "• Phone: 911\n"
    "• Or go to the nearest emergency room\n\n"
    "Do not wait for further advice if you're experiencing:\n"
    "• Chest pain or pressure\n"
    "• Difficulty breathing\n"
    "• Severe bleeding\n"
    "• Loss of consciousness"
)
OFFLINE_SYMPTOM_RESPONSE = (
    "I understand you're experiencing symptoms. While I'm in basic mode right now, here's general guidance:\n\n"
    "• Monitor your symptoms and note any changes\n"
    "• Stay hydrated and get adequate rest\n"
    "• For fever over 101.3°F (38.5°C), consider seeing a healthcare provider\n"
    "• If symptoms worsen rapidly, seek medical attention\n\n"
    "For proper diagnosis and treatment, please consult with a healthcare professional.\n\n"
    "**Emergency contacts:**\n"
    "• Emergency: 911\n"
    "• Poison Control: 1-800-222-1222"
)
OFFLINE_MEDICATION_RESPONSE = (
    "For medication questions in basic mode:\n\n"
    "**General guidance:**\n"
    "• Always take medications as prescribed\n"
    "• Don't stop medications suddenly without consulting your doctor\n"
    "• Keep an updated list of all medications\n"
    "• Check with pharmacists about interactions\n\n"
    "**Never change medication dosages without medical supervision.**\n\n"
    "For specific medication advice, please contact your pharmacist, your healthcare provider, "
    "or Poison Control: 1-800-222-1222 (for emergencies)"
)
OFFLINE_GENERAL_RESPONSE = (
    "I'm currently in basic mode due to connection issues, but I can still help with general health "
    "information.\n\n"
    "**Important contacts:**\n"
    "• Emergency: 911\n"
    "• Poison Control: 1-800-222-1222\n"
    "• Crisis Text Line: Text HOME to 741741\n\n"
    "**When to seek immediate care:**\n"
    "• Chest pain or pressure\n"
    "• Difficulty breathing\n"
    "• Severe bleeding\n"
    "• High fever (over 103°F)\n"
    "• Severe injuries\n\n"
    "For specific medical advice, please contact your healthcare provider directly."
)


def generate_offline_response(message: str) -> str:
    lower = message.lower()
    if any(keyword in lower for keyword in EMERGENCY_KEYWORDS):
        return OFFLINE_EMERGENCY_RESPONSE
    if any(keyword in lower for keyword in SYMPTOM_KEYWORDS):
        return OFFLINE_SYMPTOM_RESPONSE
    if any(keyword in lower for keyword in MEDICATION_KEYWORDS):
        return OFFLINE_MEDICATION_RESPONSE
    return OFFLINE_GENERAL_RESPONSE


class ImageUpload(BaseModel):
    filename: str
    content: bytes
    content_type: str = "image/jpeg"


class AIHealthAssistant(ScreenController):
    """Chat, symptom, medication and image tabs of the assistant screen."""

    def __init__(
        self,
        api: RuralCareClient,
        user_profile: Optional[UserProfile] = None,
        on_alert: Optional[AlertHandler] = None,
    ):
        super().__init__(on_alert)
        self.api = api
        self.user_profile = user_profile
        self.connection_status = ConnectionStatus.TESTING
        self.messages: List[ChatMessage] = []
        self.is_loading = False
        self.image_analysis_type = "wound"
        self.symptom_assessment: Optional[SymptomAssessment] = None
        self.medication_info: Optional[MedicationAnalysis] = None
        self.image_analyses: List[ImageAnalysisRecord] = []

    @property
    def _user_name(self) -> str:
        return self.user_profile.name if self.user_profile else "there"

    @property
    def _user_context(self) -> UserContext:
        if self.user_profile is None:
            return UserContext()
        return UserContext(role=self.user_profile.role.value, name=self.user_profile.name)

    @property
    def enabled_tabs(self) -> List[str]:
        if self.connection_status is ConnectionStatus.DISCONNECTED:
            return [tab for tab in TABS if tab not in ONLINE_ONLY_TABS]
        return list(TABS)

    def _reply(self, content: str, type: MessageType = MessageType.TEXT, error: bool = False, **extra) -> ChatMessage:
        message = ChatMessage(role=MessageRole.ASSISTANT, content=content, type=type, error=error, **extra)
        self.messages.append(message)
        return message

    async def initialize(self) -> None:
        """Probe the AI service and greet the user according to what answered."""
        self.connection_status = ConnectionStatus.TESTING
        try:
            status = await self.api.test_ai()
        except ServiceError as e:
            logger.error("AI initialization error: %s", e)
            self.connection_status = ConnectionStatus.DISCONNECTED
            self.messages = [
                ChatMessage(
                    id="error",
                    role=MessageRole.ASSISTANT,
                    type=MessageType.ERROR,
                    error=True,
                    content=(
                        "I'm experiencing connection issues right now. I'm operating in offline mode with basic "
                        "health guidance.\n\nFor urgent health concerns, please:\n• Call 911 for emergencies\n"
                        "• Contact your healthcare provider\n• Visit the nearest clinic\n\n"
                        "I can still provide general health information and emergency contact details. "
                        "How can I help?"
                    ),
                )
            ]
            return

        logger.info("AI service test: configured=%s result=%r", status.api_key_configured, status.test_result)
        if status.is_live:
            self.connection_status = ConnectionStatus.CONNECTED
            self.messages = [
                ChatMessage(
                    id="welcome",
                    role=MessageRole.ASSISTANT,
                    content=(
                        f"Hello {self._user_name}! I'm your AI Health Assistant. I can help you with:\n\n"
                        "• Health questions and medical guidance\n• Symptom analysis and assessment\n"
                        "• Medication information and interactions\n"
                        "• Medical image analysis (wounds, skin conditions)\n"
                        "• Voice consultations with transcription\n• Emergency guidance and triage\n\n"
                        "How can I assist you today?"
                    ),
                )
            ]
        else:
            self.connection_status = ConnectionStatus.DISCONNECTED
            self.messages = [
                ChatMessage(
                    id="fallback",
                    role=MessageRole.ASSISTANT,
                    error=True,
                    content=(
                        f"Hello {self._user_name}! I'm your AI Health Assistant. Currently operating in basic "
                        "mode as the advanced AI service is temporarily unavailable.\n\n"
                        "For urgent health concerns, please contact your healthcare provider or emergency "
                        "services immediately.\n\nHow can I assist you today?"
                    ),
                )
            ]

    async def test_connection(self) -> None:
        await self.initialize()

    async def send_message(self, text: str = "", image: Optional[ImageUpload] = None) -> Optional[ChatMessage]:
        """Append the user's message and the assistant's answer; returns the answer."""
        text = text or ""
        if not text.strip() and image is None:
            return None

        history = [ChatTurn(role=m.role.value, content=m.content) for m in self.messages[-CHAT_HISTORY_MESSAGES:]]
        self.messages.append(
            ChatMessage(
                role=MessageRole.USER,
                content=f"[Image uploaded: {image.filename}]\n{text}" if image else text,
                type=MessageType.IMAGE_ANALYSIS if image else MessageType.TEXT,
            )
        )

        self.is_loading = True
        try:
            if image is not None:
                analysis = await self.api.analyze_image(
                    image.filename, image.content, image.content_type, self.image_analysis_type
                )
                reply = self._reply(
                    analysis.analysis,
                    MessageType.IMAGE_ANALYSIS,
                    image_url=analysis.image_url,
                    analysis_id=analysis.analysis_id,
                )
                await self.load_image_history()
                return reply

            if self.connection_status is ConnectionStatus.DISCONNECTED:
                return self._reply(generate_offline_response(text), error=True)

            data = await self.api.chat(text, self._user_context, history)
            self.connection_status = ConnectionStatus.CONNECTED
            return self._reply(data.response, data.type, error=data.error)
        except ServiceError as e:
            logger.error("Send message error: %s", e)
            self.connection_status = ConnectionStatus.DISCONNECTED
            return self._reply(CONNECTION_ERROR_TEXT, MessageType.ERROR, error=True)
        finally:
            self.is_loading = False

    async def analyze_image(self, image: Optional[ImageUpload]) -> Optional[ChatMessage]:
        if image is None:
            self.alert("Please select an image first")
            return None
        return await self.send_message(
            f"Please analyze this {self.image_analysis_type} image and provide your assessment.", image
        )

    async def analyze_symptoms(
        self, symptoms: str, duration: str = "", severity: str = ""
    ) -> Optional[SymptomAssessment]:
        try:
            symptoms = require_text(symptoms, "Please describe your symptoms")
        except InputValidationError as e:
            self.alert(str(e))
            return None

        self.is_loading = True
        try:
            reply = await self.api.check_symptoms(symptoms, duration, severity, self._user_context)
        except ServiceError as e:
            logger.error("Symptom analysis error: %s", e)
            self.alert("Unable to analyze symptoms right now. Please consult with a healthcare provider.")
            return None
        finally:
            self.is_loading = False

        self.symptom_assessment = reply.assessment
        return reply.assessment

    async def check_medications(self, medications: str) -> Optional[MedicationAnalysis]:
        try:
            medications = require_text(medications, "Please enter medication names")
        except InputValidationError as e:
            self.alert(str(e))
            return None

        names = [name.strip() for name in medications.split(",") if name.strip()]
        self.is_loading = True
        try:
            reply = await self.api.check_medications(names, self._user_context)
        except ServiceError as e:
            logger.error("Medication analysis error: %s", e)
            self.alert(
                "Unable to analyze medications right now. Please consult with a pharmacist or healthcare provider."
            )
            return None
        finally:
            self.is_loading = False

        self.medication_info = reply.analysis
        return reply.analysis

    async def load_image_history(self) -> None:
        try:
            self.image_analyses = await self.api.image_history()
        except ServiceError as e:
            logger.error("Error loading image history: %s", e)
