"""Voice capture state machine over the native or streaming backend."""

from __future__ import annotations

from typing import Callable, Optional, Union

from ..config.settings import WidgetSettings
from ..core.errors import MalformedEnvelopeError, VoiceError
from ..core.logger import get_logger
from ..services.schemas import TranscriptEnvelope, parse_voice_payload
from ..state.session import BackendKind, Session, VoiceState
from ..ui.presenter import SessionPresenter
from ..voice.backends import VoiceBackend
from .scheduler import Scheduler


logger = get_logger("floatchat.voice")

TranscriptCallback = Callable[[Union[str, TranscriptEnvelope]], None]
ErrorCallback = Callable[[str], None]

VOICE_START = "voice-start"
VOICE_RESTART = "voice-restart"

LISTENING_TEXT = "Listening..."
NOT_SUPPORTED_TEXT = "Voice not supported."
BUSY_TEXT = "Voice is busy. Try again."


class VoiceCaptureController:
    """Drives exactly one voice backend through Idle/Listening/Restarting/Error.

    Transcripts are surfaced per backend: native payloads go straight to the
    timeline (a prefixed envelope yields a user message then a bot message),
    streaming finals fill the input draft without sending it.
    """

    def __init__(
        self,
        session: Session,
        presenter: SessionPresenter,
        scheduler: Scheduler,
        settings: WidgetSettings,
        backend: VoiceBackend | None,
        *,
        on_transcript: Optional[TranscriptCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self.session = session
        self.presenter = presenter
        self.scheduler = scheduler
        self.settings = settings
        self.backend = backend
        self._transcript_callback = on_transcript
        self._error_callback = on_error
        if backend is not None:
            backend.bind(self)
            session.voice.backend = backend.kind

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    @property
    def supported(self) -> bool:
        return self.backend is not None

    @property
    def state(self) -> VoiceState:
        return self.session.voice.state

    def toggle(self) -> None:
        if not self.supported:
            self.presenter.set_voice_status_text(NOT_SUPPORTED_TEXT, True)
            return
        self.set_enabled(not self.session.voice.enabled)

    def set_enabled(self, enabled: bool) -> None:
        """Enable (capture starts after a settle delay) or disable voice."""
        if not self.supported:
            self.presenter.set_voice_status_text(NOT_SUPPORTED_TEXT, True)
            return
        voice = self.session.voice
        voice.enabled = bool(enabled)
        if not voice.enabled:
            self._halt()
            self.presenter.set_voice_status_text("", False)
            return
        if voice.state is not VoiceState.LISTENING:
            self.scheduler.call_later(VOICE_START, self.settings.voice_settle_delay, self._start_if_enabled)

    def start_capture(self) -> bool:
        """Start the backend; False when unsupported, active or busy."""
        if self.backend is None:
            self.presenter.set_voice_status_text(NOT_SUPPORTED_TEXT, True)
            return False
        if self.session.voice.state is VoiceState.LISTENING or self.backend.active:
            return False
        self._cancel_pending()
        self._transition(VoiceState.LISTENING)
        self._set_listening_ui(True)
        try:
            started = self.backend.start()
        except Exception:
            logger.exception("Voice backend failed to start")
            started = False
        if not started:
            logger.info("Voice backend busy")
            self._transition(VoiceState.IDLE)
            self._set_listening_ui(False)
            self.presenter.set_voice_status_text(BUSY_TEXT, True)
            return False
        return True

    def stop_capture(self) -> None:
        """Stop any capture; always ends Idle with the status text cleared."""
        self._halt()
        self.presenter.set_voice_status_text("", False)

    def shutdown(self) -> None:
        self.session.voice.enabled = False
        self._halt()

    # ------------------------------------------------------------------ #
    # Backend events
    # ------------------------------------------------------------------ #
    def on_partial(self, text: str) -> None:
        if not self._accepting_events():
            return
        self.presenter.set_voice_status_text(f"Listening: {text}", True)

    def on_transcript(self, text: str) -> None:
        if not self._accepting_events():
            return
        if self.session.voice.backend is BackendKind.STREAMING:
            self.session.draft = text
            self.presenter.set_input_text(text)
            self.presenter.set_voice_status_text("", False)
            self._emit_transcript(text)
            # the recognizer's end event drives the restart
            return
        self._deliver_native_payload(text)
        self._after_capture()

    def on_end(self) -> None:
        if not self._accepting_events():
            return
        self._after_capture()

    def on_error(self, error: VoiceError) -> None:
        if not self._accepting_events():
            return
        voice = self.session.voice
        logger.info("Voice error %r (fatal=%s)", error.code or error.message, error.fatal)
        self._emit_error(error.message)
        if error.fatal or not voice.enabled:
            self._transition(VoiceState.ERROR)
            self._set_listening_ui(False)
            self.presenter.set_voice_status_text(error.message, True)
            return
        self._transition(VoiceState.ERROR)
        if voice.backend is BackendKind.NATIVE:
            self.presenter.set_voice_status_text(error.message, True)
        self._schedule_restart(self.settings.voice_error_restart_delay)

    # ------------------------------------------------------------------ #
    # Restart policy
    # ------------------------------------------------------------------ #
    def _after_capture(self) -> None:
        if self.session.voice.enabled:
            self._schedule_restart(self.settings.voice_restart_delay)
            return
        self._transition(VoiceState.IDLE)
        self._set_listening_ui(False)
        self.presenter.set_voice_status_text("", False)

    def _schedule_restart(self, delay: float) -> None:
        self._transition(VoiceState.RESTARTING)
        self.scheduler.call_later(VOICE_RESTART, delay, self._restart)

    def _restart(self) -> None:
        voice = self.session.voice
        if voice.state is not VoiceState.RESTARTING:
            return
        self._transition(VoiceState.IDLE)
        if not voice.enabled:
            self._set_listening_ui(False)
            return
        self.start_capture()

    def _start_if_enabled(self) -> None:
        voice = self.session.voice
        if voice.enabled and voice.state is not VoiceState.LISTENING:
            self.start_capture()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _deliver_native_payload(self, raw: str) -> None:
        try:
            payload = parse_voice_payload(raw)
        except MalformedEnvelopeError:
            logger.warning("Malformed voice envelope, showing raw payload")
            self.presenter.append_bot_message(raw)
            self._emit_transcript(raw)
            return
        if isinstance(payload, TranscriptEnvelope):
            if payload.transcript:
                self.presenter.append_user_message(payload.transcript)
            if payload.reply:
                self.presenter.append_bot_message(payload.reply)
        else:
            self.presenter.append_bot_message(payload)
        self._emit_transcript(payload)

    def _accepting_events(self) -> bool:
        return self.session.voice.state is VoiceState.LISTENING

    def _halt(self) -> None:
        self._cancel_pending()
        if self.backend is not None and (
            self.session.voice.state is VoiceState.LISTENING or self.backend.active
        ):
            try:
                self.backend.stop()
            except Exception:
                logger.exception("Voice backend failed to stop")
        self._transition(VoiceState.IDLE)
        self._set_listening_ui(False)

    def _cancel_pending(self) -> None:
        self.scheduler.cancel(VOICE_START)
        self.scheduler.cancel(VOICE_RESTART)

    def _transition(self, state: VoiceState) -> None:
        voice = self.session.voice
        if voice.state is not state:
            logger.debug("Voice %s -> %s", voice.state.value, state.value)
            voice.state = state

    def _set_listening_ui(self, listening: bool) -> None:
        self.presenter.set_voice_indicator(listening)
        if listening:
            self.presenter.set_voice_status_text(LISTENING_TEXT, True)
        elif not self.session.voice.enabled:
            self.presenter.set_voice_status_text("", False)

    def _emit_transcript(self, payload: Union[str, TranscriptEnvelope]) -> None:
        if self._transcript_callback:
            self._transcript_callback(payload)

    def _emit_error(self, message: str) -> None:
        if self._error_callback:
            self._error_callback(message)
