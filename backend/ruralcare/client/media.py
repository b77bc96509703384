# backend/ruralcare/client/media.py

"""
Audio capture and speech output collaborators.

The consultation manager only talks to these interfaces. A host embeds the
core by supplying a MediaEnvironment (capability flags, permission query,
device acquisition) and optionally a SpeechSynthesizer.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from ruralcare.client.errors import RuralCareError

logger = logging.getLogger(__name__)

PREFERRED_MIME_TYPES = (
    "audio/webm;codecs=opus",
    "audio/webm",
    "audio/mp4",
    "audio/ogg;codecs=opus",
    "audio/ogg",
    "audio/wav",
)

AUDIO_CONSTRAINTS: Dict[str, Any] = {
    "echo_cancellation": True,
    "noise_suppression": True,
    "auto_gain_control": True,
    "sample_rate": 16000,
    "channel_count": 1,
}

LOCAL_HOSTS = ("localhost", "127.0.0.1")


class MediaErrorKind(str, Enum):
    DENIED = "denied"
    NO_DEVICE = "no-device"
    UNSUPPORTED = "unsupported"
    DEVICE_BUSY = "device-busy"
    OVER_CONSTRAINED = "over-constrained"
    SECURITY = "security"
    UNKNOWN = "unknown"


REMEDIATION_MESSAGES = {
    MediaErrorKind.DENIED: (
        "Microphone access was denied. To enable it:\n"
        "1. Click the camera/microphone icon in your browser's address bar\n"
        '2. Select "Allow" for microphone access\n'
        "3. Refresh the page and try again"
    ),
    MediaErrorKind.NO_DEVICE: "No microphone was found. Please connect a microphone and try again.",
    MediaErrorKind.UNSUPPORTED: (
        "Your browser doesn't support audio recording. Please try Chrome, Firefox, or Safari."
    ),
    MediaErrorKind.DEVICE_BUSY: (
        "Your microphone is being used by another application. "
        "Please close other apps using the microphone and try again."
    ),
    MediaErrorKind.OVER_CONSTRAINED: (
        "Microphone settings are not compatible. Please try again with default settings."
    ),
    MediaErrorKind.SECURITY: "Security settings prevent microphone access. Please check your browser settings.",
}


class MediaAccessError(RuralCareError):
    """Acquiring or testing the capture device failed."""

    def __init__(self, kind: MediaErrorKind, detail: str = ""):
        super().__init__(detail or kind.value)
        self.kind = kind
        self.detail = detail

    @property
    def remediation(self) -> str:
        if self.kind in REMEDIATION_MESSAGES:
            return REMEDIATION_MESSAGES[self.kind]
        return (
            f"Unable to access microphone: {self.detail or 'Unknown error'}. "
            "Please check your browser settings and try the text chat option."
        )


class PermissionStatus:
    """
    Result of a silent microphone permission query. Hosts call `update`
    when the user changes consent out of band; listeners are notified.
    """

    def __init__(self, state: str):
        self.state = state
        self._listeners: List[Callable[[str], None]] = []

    def add_listener(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)

    def update(self, state: str) -> None:
        self.state = state
        for listener in list(self._listeners):
            listener(state)


class Recorder(Protocol):
    def start(self) -> None:
        ...

    async def stop(self) -> bytes:
        """Stop recording and return everything captured since `start`."""
        ...


class AudioStream(Protocol):
    def create_recorder(self, mime_type: str) -> Recorder:
        ...

    def release(self) -> None:
        ...


class MediaEnvironment(Protocol):
    has_audio_capture: bool
    has_media_recorder: bool
    protocol: str
    hostname: str

    def is_type_supported(self, mime_type: str) -> bool:
        ...

    async def query_microphone_permission(self) -> Optional[PermissionStatus]:
        """Return the current grant without prompting, or None without a permissions API."""
        ...

    async def get_user_media(self, constraints: Dict[str, Any]) -> AudioStream:
        """Acquire the capture device; raise MediaAccessError on failure."""
        ...


class SpeechSynthesizer(Protocol):
    def speak(self, text: str, rate: float = 0.9, pitch: float = 1.0) -> None:
        ...


def is_secure_context(environment: MediaEnvironment) -> bool:
    return environment.protocol == "https:" or environment.hostname in LOCAL_HOSTS


def preferred_mime_type(environment: MediaEnvironment) -> str:
    for mime_type in PREFERRED_MIME_TYPES:
        if environment.is_type_supported(mime_type):
            logger.debug("Using MIME type: %s", mime_type)
            return mime_type
    logger.debug("Using default MIME type")
    return ""
