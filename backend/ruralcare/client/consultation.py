# backend/ruralcare/client/consultation.py

import asyncio
import itertools
import logging
from datetime import date
from typing import Coroutine, Dict, List, Optional, Set

from ruralcare.client import api_client
from ruralcare.client.api_client import RuralCareClient
from ruralcare.client.errors import ServiceError
from ruralcare.client.media import (
    AUDIO_CONSTRAINTS,
    AudioStream,
    MediaAccessError,
    MediaEnvironment,
    MediaErrorKind,
    PermissionStatus,
    Recorder,
    SpeechSynthesizer,
    is_secure_context,
    preferred_mime_type,
)
from ruralcare.client.screen import AlertHandler, ScreenController
from ruralcare.client.translation import TranslationContext
from ruralcare.core.config import Settings, settings as default_settings
from ruralcare.models.assistant import ChatTurn, UserContext
from ruralcare.models.consultation import (
    ConsultationSession,
    ConsultationType,
    PermissionState,
    Speaker,
    TranscriptionSegment,
    TranscriptionStatus,
)
from ruralcare.models.session import UserProfile

logger = logging.getLogger(__name__)

AI_CONTEXT_SEGMENTS = 4
DEFAULT_CONFIDENCE = 0.8

NO_CAPTURE_API_MESSAGE = (
    "Your browser does not support audio recording. Please use a modern browser like Chrome, Firefox, or Safari."
)
NO_RECORDER_MESSAGE = (
    "Audio recording is not supported in your browser. Please update your browser or try a different one."
)
INSECURE_CONTEXT_MESSAGE = (
    "Voice recording requires a secure connection (HTTPS). "
    "Please access this site via HTTPS or use the text chat option."
)
PREVIOUSLY_DENIED_MESSAGE = (
    "Microphone access was previously denied. "
    "Please click the microphone icon in your browser's address bar to enable it."
)
DENIED_MESSAGE = "Microphone access was denied."
START_FAILED_MESSAGE = "Unable to start voice recording. Using text-only mode."
RECORDING_FAILED_MESSAGE = "Recording failed. Continuing with text input only."
RECORDING_ERROR_MESSAGE = "Recording error occurred. Continuing with text input only."
TRANSCRIPTION_UNAVAILABLE_MESSAGE = "Transcription unavailable. You can keep typing your messages."

ENDED_MESSAGE = "Consultation ended. Generating summary..."
SUMMARY_HEADER = "CONSULTATION SUMMARY:\n\n"
SUMMARY_PROMPT = (
    "Please provide a consultation summary for this session transcript:\n\n{transcript}\n\n"
    "Include: 1) Key symptoms/concerns discussed, 2) Recommendations provided, 3) Follow-up actions needed"
)


def _welcome_text(consultation_type: ConsultationType, voice: bool) -> str:
    if voice:
        prompt = (
            "Please describe your health concerns."
            if consultation_type is ConsultationType.PATIENT
            else "Begin your patient consultation."
        )
        return f"Voice consultation started with AI transcription. You can speak or type your messages. {prompt}"
    prompt = (
        "Please describe your health concerns using the text input below."
        if consultation_type is ConsultationType.PATIENT
        else "Begin your patient consultation using text input."
    )
    return f"Text consultation started with AI assistant. {prompt}"


class _Call:
    """Bookkeeping for one call; results always land in the call that produced them."""

    def __init__(self, session: ConsultationSession):
        self.session = session
        self.finalized = False
        self.sequence = itertools.count()
        self.next_sequence = 0
        self.ready: Dict[int, Optional[TranscriptionSegment]] = {}
        self.tasks: Set[asyncio.Task] = set()


class VoiceConsultation(ScreenController):
    """
    One real-time consultation screen.

    Handles microphone capability and permission checks, records audio in
    fixed-length segments while a call is active, sends each segment for
    transcription, asks the assistant for a reply after every patient turn
    and requests a summary once the call ends. Without a usable microphone
    the call runs in text-only mode; audio problems never block a call.

    Transcribed segments are numbered when capture starts. With
    ORDER_TRANSCRIPTS_BY_CAPTURE they are appended in that order even when
    transcriptions resolve out of order; otherwise in resolution order.
    """

    def __init__(
        self,
        api: RuralCareClient,
        media: MediaEnvironment,
        consultation_type: ConsultationType = ConsultationType.PATIENT,
        user_profile: Optional[UserProfile] = None,
        speech: Optional[SpeechSynthesizer] = None,
        translator: Optional[TranslationContext] = None,
        config: Optional[Settings] = None,
        on_alert: Optional[AlertHandler] = None,
    ):
        super().__init__(on_alert)
        self.api = api
        self.media = media
        self.consultation_type = consultation_type
        self.user_profile = user_profile
        self.speech = speech
        self.translator = translator
        self.config = config or default_settings

        self.permission_state = PermissionState.UNKNOWN
        self.permission_checked = False
        self.error_message = ""
        self.show_text_fallback = False

        self.is_in_call = False
        self.is_recording = False
        self.is_muted = False
        self.is_speaker_on = True
        self.is_transcribing = False
        self.transcription_status = TranscriptionStatus.IDLE
        self.call_duration = 0

        self.enable_real_time_translation = True
        self.translated_segments: Dict[str, str] = {}

        self._mounted = True
        self._call: Optional[_Call] = None
        self._permission_status: Optional[PermissionStatus] = None
        self._stream: Optional[AudioStream] = None
        self._mime_type = ""
        self._recorder: Optional[Recorder] = None
        self._recorder_sequence = -1
        self._timer_task: Optional[asyncio.Task] = None
        self._recording_task: Optional[asyncio.Task] = None
        self._summary_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._translation_tasks: Set[asyncio.Task] = set()
        self._in_flight = 0

    @property
    def session(self) -> Optional[ConsultationSession]:
        """The most recently started call's session."""
        return self._call.session if self._call else None

    @property
    def transcription(self) -> List[TranscriptionSegment]:
        return list(self.session.transcription) if self.session else []

    @property
    def human_speaker(self) -> Speaker:
        return Speaker.PATIENT if self.consultation_type is ConsultationType.PATIENT else Speaker.DOCTOR

    # Permissions

    def _set_unavailable(self, message: str) -> None:
        self.permission_state = PermissionState.UNAVAILABLE
        self.error_message = message
        self.show_text_fallback = True
        self.permission_checked = True

    async def initialize_permissions(self) -> None:
        """Check capture capabilities in order, then read any existing grant without prompting."""
        self.permission_state = PermissionState.CHECKING
        self.error_message = ""

        if not self.media.has_audio_capture:
            self._set_unavailable(NO_CAPTURE_API_MESSAGE)
            return
        if not self.media.has_media_recorder:
            self._set_unavailable(NO_RECORDER_MESSAGE)
            return
        if not is_secure_context(self.media):
            self._set_unavailable(INSECURE_CONTEXT_MESSAGE)
            return

        try:
            status = await self.media.query_microphone_permission()
        except Exception as e:
            logger.warning("Permissions API not supported: %s", e)
            status = None

        if status is None:
            self.permission_state = PermissionState.UNKNOWN
        else:
            if status.state == "granted":
                self.permission_state = PermissionState.GRANTED
            elif status.state == "denied":
                self.permission_state = PermissionState.DENIED
                self.error_message = PREVIOUSLY_DENIED_MESSAGE
                self.show_text_fallback = True
            else:
                self.permission_state = PermissionState.UNKNOWN
            if status is not self._permission_status:
                status.add_listener(self._on_permission_change)
                self._permission_status = status

        self.permission_checked = True

    def _on_permission_change(self, state: str) -> None:
        if self.permission_state is PermissionState.UNAVAILABLE:
            return
        if state == "granted":
            self.permission_state = PermissionState.GRANTED
            self.error_message = ""
            self.show_text_fallback = self.is_in_call
        elif state == "denied":
            self.permission_state = PermissionState.DENIED
            self.error_message = DENIED_MESSAGE
            self.show_text_fallback = True

    def _permission_failed(self, error: MediaAccessError) -> bool:
        logger.error("Microphone permission error: %s (%s)", error.kind.value, error.detail)
        self.permission_state = PermissionState.DENIED
        self.error_message = error.remediation
        self.show_text_fallback = True
        return False

    async def request_microphone_permission(self) -> bool:
        """Acquire the microphone, test a recorder on it and release it again."""
        if self.permission_state is PermissionState.UNAVAILABLE:
            return False

        self.permission_state = PermissionState.REQUESTING
        self.error_message = ""

        try:
            stream = await self.media.get_user_media(AUDIO_CONSTRAINTS)
        except MediaAccessError as e:
            return self._permission_failed(e)

        try:
            recorder = stream.create_recorder(preferred_mime_type(self.media))
            recorder.start()
            await recorder.stop()
        except Exception as e:
            logger.error("MediaRecorder test failed: %s", e)
            return self._permission_failed(
                MediaAccessError(MediaErrorKind.UNKNOWN, "Audio recording not supported with current settings")
            )
        finally:
            stream.release()

        logger.info("Microphone access granted")
        self.permission_state = PermissionState.GRANTED
        return True

    async def retry_permission(self) -> None:
        self.permission_state = PermissionState.UNKNOWN
        self.error_message = ""
        self.show_text_fallback = False
        await self.initialize_permissions()

    # Call lifecycle

    def _begin_session(self, voice: bool) -> None:
        self.is_in_call = True
        self.call_duration = 0
        self.show_text_fallback = True
        self._call = _Call(ConsultationSession())
        self._call.session.append(
            TranscriptionSegment(speaker=Speaker.AI, text=_welcome_text(self.consultation_type, voice))
        )
        self._timer_task = asyncio.create_task(self._tick())

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.config.DURATION_TICK_SECONDS)
            self.call_duration += 1
            if self.session is not None:
                self.session.duration = self.call_duration

    async def start_call(self) -> None:
        if self.is_in_call:
            return
        self.show_text_fallback = True

        if self.permission_state is PermissionState.UNAVAILABLE:
            self._begin_session(voice=False)
            return
        if self.permission_state is not PermissionState.GRANTED:
            if not await self.request_microphone_permission():
                self._begin_session(voice=False)
                return

        try:
            stream = await self.media.get_user_media(AUDIO_CONSTRAINTS)
        except MediaAccessError as e:
            logger.error("Error starting call: %s", e)
            self.error_message = START_FAILED_MESSAGE
            self._begin_session(voice=False)
            return

        self._stream = stream
        self._mime_type = preferred_mime_type(self.media)
        self.error_message = ""
        self._begin_session(voice=True)
        if self._start_segment(self._call, stream):
            self._recording_task = asyncio.create_task(self._record(self._call, stream))

    async def end_call(self) -> None:
        """
        End the call now; the summary is requested in the background and
        appended as the last segment once every outstanding turn settles.
        """
        if not self.is_in_call:
            return
        self.is_in_call = False
        await self._stop_capture(dispatch_final=True)

        call = self._call
        call.session.duration = self.call_duration
        self._append(call, TranscriptionSegment(speaker=Speaker.AI, text=ENDED_MESSAGE))
        self._summary_task = self._spawn(call, self._generate_summary(call))

    async def unmount(self) -> None:
        """Leave the screen: release the device; late results are dropped."""
        self._mounted = False
        self.is_in_call = False
        await self._stop_capture(dispatch_final=False)

    def toggle_mute(self) -> bool:
        self.is_muted = not self.is_muted
        return self.is_muted

    def toggle_speaker(self) -> bool:
        self.is_speaker_on = not self.is_speaker_on
        return self.is_speaker_on

    # Segmented recording

    def _start_segment(self, call: _Call, stream: AudioStream) -> bool:
        sequence = next(call.sequence)
        try:
            recorder = stream.create_recorder(self._mime_type)
            recorder.start()
        except Exception as e:
            logger.error("Error starting recording: %s", e)
            self._resolve_sequence(call, sequence, None)
            self._recording_failed(RECORDING_FAILED_MESSAGE)
            return False

        self._recorder = recorder
        self._recorder_sequence = sequence
        self.is_recording = True
        return True

    def _recording_failed(self, message: str) -> None:
        self.error_message = message
        self.is_recording = False
        self.show_text_fallback = True

    async def _record(self, call: _Call, stream: AudioStream) -> None:
        while True:
            await asyncio.sleep(self.config.SEGMENT_SECONDS)
            recorder, sequence = self._recorder, self._recorder_sequence
            self._recorder = None
            if recorder is None or not await self._finish_segment(call, recorder, sequence):
                return
            if not self.is_in_call or self._stream is not stream:
                return
            await asyncio.sleep(self.config.SEGMENT_RESTART_DELAY_SECONDS)
            if not self.is_in_call or self._stream is not stream:
                return
            if not self._start_segment(call, stream):
                return

    async def _finish_segment(self, call: _Call, recorder: Recorder, sequence: int) -> bool:
        try:
            audio = await recorder.stop()
        except asyncio.CancelledError:
            self._resolve_sequence(call, sequence, None)
            raise
        except Exception as e:
            logger.error("MediaRecorder error: %s", e)
            self._resolve_sequence(call, sequence, None)
            self._recording_failed(RECORDING_ERROR_MESSAGE)
            return False

        if audio and not self.is_muted:
            self._spawn(call, self._transcribe_segment(call, sequence, audio))
        else:
            self._resolve_sequence(call, sequence, None)
        return True

    async def _stop_capture(self, dispatch_final: bool) -> None:
        for task in (self._timer_task, self._recording_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._timer_task = None
        self._recording_task = None

        recorder, sequence = self._recorder, self._recorder_sequence
        self._recorder = None
        if recorder is not None:
            if dispatch_final:
                await self._finish_segment(self._call, recorder, sequence)
            else:
                try:
                    await recorder.stop()
                except Exception as e:
                    logger.warning("Stopping recorder failed: %s", e)
                self._resolve_sequence(self._call, sequence, None)

        if self._stream is not None:
            self._stream.release()
            self._stream = None
        self.is_recording = False

    # Transcription and turn-taking

    def _spawn(self, call: _Call, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        call.tasks.add(task)
        task.add_done_callback(call.tasks.discard)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._translation_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Consultation task failed", exc_info=task.exception())

    async def wait_for_pending(self) -> None:
        """Wait until every transcription, reply, summary and translation has settled."""
        while self._tasks or self._translation_tasks:
            await asyncio.gather(*(self._tasks | self._translation_tasks), return_exceptions=True)

    def _resolve_sequence(
        self, call: _Call, sequence: int, segment: Optional[TranscriptionSegment]
    ) -> List[TranscriptionSegment]:
        if not self.config.ORDER_TRANSCRIPTS_BY_CAPTURE:
            return [segment] if segment is not None else []

        call.ready[sequence] = segment
        released = []
        while call.next_sequence in call.ready:
            ready = call.ready.pop(call.next_sequence)
            call.next_sequence += 1
            if ready is not None:
                released.append(ready)
        return released

    def _transcription_unavailable(self) -> None:
        self.transcription_status = TranscriptionStatus.UNAVAILABLE
        if self.config.SURFACE_TRANSCRIPTION_ERRORS:
            self.error_message = TRANSCRIPTION_UNAVAILABLE_MESSAGE

    async def _transcribe_segment(self, call: _Call, sequence: int, audio: bytes) -> None:
        self._in_flight += 1
        self.is_transcribing = True
        try:
            result = await self.api.transcribe(audio, "segment.wav", self._mime_type or "audio/webm")
        except ServiceError as e:
            logger.error("Transcription error: %s", e)
            result = None
        finally:
            self._in_flight -= 1
            self.is_transcribing = self._in_flight > 0

        text = ""
        if result is None or result.error:
            self._transcription_unavailable()
        else:
            self.transcription_status = TranscriptionStatus.OK
            text = result.transcription.strip()

        segment = None
        if text:
            segment = TranscriptionSegment(
                speaker=self.human_speaker,
                text=text,
                confidence=DEFAULT_CONFIDENCE if result.confidence is None else result.confidence,
                sequence=sequence,
            )

        for ready in self._resolve_sequence(call, sequence, segment):
            await self._human_turn(call, ready)

    async def send_text_message(self, text: str) -> bool:
        text = (text or "").strip()
        if not text or not self.is_in_call:
            return False
        call = self._call
        await self._spawn(call, self._human_turn(call, TranscriptionSegment(speaker=self.human_speaker, text=text)))
        return True

    async def _human_turn(self, call: _Call, segment: TranscriptionSegment) -> None:
        history = call.session.transcription[-AI_CONTEXT_SEGMENTS:]
        if not self._append(call, segment):
            return
        if self.consultation_type is ConsultationType.PATIENT:
            await self._ai_turn(call, segment.text, history)

    async def _ai_turn(self, call: _Call, message: str, history: List[TranscriptionSegment]) -> None:
        turns = [
            ChatTurn(role="assistant" if seg.speaker is Speaker.AI else "user", content=seg.text) for seg in history
        ]
        context = UserContext(
            role=self.user_profile.role.value if self.user_profile else None,
            name=self.user_profile.name if self.user_profile else None,
            consultation_type="voice",
        )
        try:
            reply = await self.api.chat(f"Voice consultation context: {message}", context, turns)
        except ServiceError as e:
            logger.error("AI response error: %s", e)
            return

        if not self._append(call, TranscriptionSegment(speaker=Speaker.AI, text=reply.response)):
            return
        if (
            call is self._call
            and self.is_speaker_on
            and self.speech is not None
            and self.permission_state is PermissionState.GRANTED
            and self.is_recording
            and not self.is_muted
        ):
            try:
                self.speech.speak(reply.response, rate=0.9, pitch=1.0)
            except Exception as e:
                logger.warning("Speech synthesis failed: %s", e)

    async def _generate_summary(self, call: _Call) -> None:
        current = asyncio.current_task()
        pending = [task for task in call.tasks if task is not current]
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = [task for task in call.tasks if task is not current]

        try:
            reply = await self.api.chat(
                SUMMARY_PROMPT.format(transcript=call.session.transcript_lines()),
                UserContext(role="system", name="Summary Generator"),
                call_class=api_client.SUMMARY,
            )
        except ServiceError as e:
            logger.error("Summary generation error: %s", e)
        else:
            if self._append(call, TranscriptionSegment(speaker=Speaker.AI, text=SUMMARY_HEADER + reply.response)):
                call.session.summary = reply.response
        finally:
            call.finalized = True

    def _append(self, call: Optional[_Call], segment: TranscriptionSegment) -> bool:
        if not self._mounted or call is None or call.finalized:
            logger.debug("Dropping segment %s after the consultation closed", segment.id)
            return False
        call.session.append(segment)
        self._translate_segment(segment)
        return True

    def _translate_segment(self, segment: TranscriptionSegment) -> None:
        if (
            self.translator is None
            or not self.enable_real_time_translation
            or self.translator.current_language.code == "en"
        ):
            return
        task = asyncio.create_task(self._store_translation(segment))
        self._translation_tasks.add(task)
        task.add_done_callback(self._task_done)

    async def _store_translation(self, segment: TranscriptionSegment) -> None:
        self.translated_segments[segment.id] = await self.translator.translate(segment.text)

    # Transcript download

    def transcript_text(self) -> str:
        return "\n\n".join(
            f"[{seg.timestamp.strftime('%H:%M:%S')}] {seg.speaker.value.upper()}: {seg.text}"
            for seg in self.transcription
        )

    def transcript_filename(self) -> str:
        return f"consultation-transcript-{date.today().isoformat()}.txt"
