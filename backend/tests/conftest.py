import asyncio
from typing import Any, Dict, List, Optional

import httpx
import pytest

from ruralcare.client.api_client import RuralCareClient
from ruralcare.client.errors import ServiceUnavailable
from ruralcare.client.media import MediaAccessError, MediaErrorKind, PermissionStatus
from ruralcare.core.config import settings
from ruralcare.main import app
from ruralcare.models.assistant import AIServiceStatus, ChatReply, TranscriptionResult
from ruralcare.services import ai_service, auth_service, kv_store, storage


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    monkeypatch.setattr(ai_service, "_client", None)
    kv_store.clear()
    storage.clear()
    auth_service.reset()
    yield
    kv_store.clear()
    storage.clear()
    auth_service.reset()


@pytest.fixture
def fast_config():
    return settings.model_copy(
        update={
            "SEGMENT_SECONDS": 0.02,
            "SEGMENT_RESTART_DELAY_SECONDS": 0.0,
            "DURATION_TICK_SECONDS": 0.01,
            "ORDER_TRANSCRIPTS_BY_CAPTURE": True,
            "SURFACE_TRANSCRIPTION_ERRORS": False,
        }
    )


@pytest.fixture
def demo_users():
    auth_service.seed_demo_users()
    return auth_service.DEMO_USERS


@pytest.fixture
async def backend_client(demo_users):
    client = RuralCareClient(base_url="http://testserver", transport=httpx.ASGITransport(app=app))
    yield client
    await client.aclose()


class FakeRecorder:
    def __init__(self, stream: "FakeStream"):
        self.stream = stream
        self.started = False

    def start(self) -> None:
        if self.stream.fail_start:
            raise RuntimeError("recorder start failed")
        self.started = True

    async def stop(self) -> bytes:
        self.started = False
        if self.stream.fail_stop:
            raise RuntimeError("recorder error")
        return self.stream.next_chunk()


class FakeStream:
    def __init__(self, chunks: Optional[List[bytes]] = None):
        self.chunks = list(chunks or [])
        self.released = False
        self.fail_start = False
        self.fail_stop = False
        self.recorders: List[FakeRecorder] = []

    def next_chunk(self) -> bytes:
        return self.chunks.pop(0) if self.chunks else b""

    def create_recorder(self, mime_type: str) -> FakeRecorder:
        recorder = FakeRecorder(self)
        self.recorders.append(recorder)
        return recorder

    def release(self) -> None:
        self.released = True


class FakeMedia:
    """Scriptable capture environment."""

    def __init__(
        self,
        permission: Optional[str] = "prompt",
        has_audio_capture: bool = True,
        has_media_recorder: bool = True,
        protocol: str = "https:",
        hostname: str = "clinic.example.org",
    ):
        self.has_audio_capture = has_audio_capture
        self.has_media_recorder = has_media_recorder
        self.protocol = protocol
        self.hostname = hostname
        self.permission = PermissionStatus(permission) if permission else None
        self.acquire_errors: List[MediaAccessError] = []
        self.chunks: List[bytes] = []
        self.streams: List[FakeStream] = []
        self.acquisitions = 0
        self.constraints: List[Dict[str, Any]] = []

    def is_type_supported(self, mime_type: str) -> bool:
        return mime_type == "audio/webm"

    async def query_microphone_permission(self) -> Optional[PermissionStatus]:
        return self.permission

    async def get_user_media(self, constraints: Dict[str, Any]) -> FakeStream:
        self.acquisitions += 1
        self.constraints.append(constraints)
        if self.acquire_errors:
            raise self.acquire_errors.pop(0)
        stream = FakeStream(self.chunks)
        self.streams.append(stream)
        return stream

    def deny(self) -> None:
        self.acquire_errors.append(MediaAccessError(MediaErrorKind.DENIED, "NotAllowedError"))


class FakeSpeech:
    def __init__(self):
        self.spoken: List[str] = []

    def speak(self, text: str, rate: float = 0.9, pitch: float = 1.0) -> None:
        self.spoken.append(text)


class FakeApi:
    """Stands in for RuralCareClient in controller tests."""

    def __init__(self):
        self.access_token: Optional[str] = None
        self.chat_calls: List[Dict[str, Any]] = []
        self.transcribe_calls: List[bytes] = []
        self.transcripts: Dict[bytes, TranscriptionResult] = {}
        self.transcribe_delays: Dict[bytes, float] = {}
        self.chat_delay = 0.0
        self.chat_error: Optional[Exception] = None
        self.status = AIServiceStatus(api_key_configured=True, test_result="API working")
        self.status_error: Optional[Exception] = None

    async def chat(self, message, user_context=None, history=None, call_class="chat") -> ChatReply:
        self.chat_calls.append(
            {"message": message, "user_context": user_context, "history": history or [], "call_class": call_class}
        )
        if self.chat_delay:
            await asyncio.sleep(self.chat_delay)
        if self.chat_error is not None:
            raise self.chat_error
        if call_class == "summary":
            return ChatReply(response="Patient reported a headache.")
        return ChatReply(response=f"AI reply to: {message}")

    async def transcribe(self, audio, filename="segment.wav", content_type="audio/webm") -> TranscriptionResult:
        self.transcribe_calls.append(audio)
        delay = self.transcribe_delays.get(audio, 0.0)
        if delay:
            await asyncio.sleep(delay)
        result = self.transcripts.get(audio)
        if result is None:
            raise ServiceUnavailable("transcription service down", 503)
        return result

    async def test_ai(self) -> AIServiceStatus:
        if self.status_error is not None:
            raise self.status_error
        return self.status

    async def translate(self, text, target_language, source_language="en") -> str:
        return f"[{target_language}] {text}"


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def media():
    return FakeMedia()
