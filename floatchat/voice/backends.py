"""Voice backends: one poll-driven, one push-driven, behind one interface."""

from __future__ import annotations

from typing import Callable, Optional, Protocol

from ..config.settings import WidgetSettings
from ..core.errors import RecognizerBusyError, VoiceError, is_fatal_voice_error
from ..core.logger import get_logger
from ..runtime.scheduler import Scheduler
from ..state.session import BackendKind
from .bridge import HostBridge, probe_native_voice


logger = get_logger("floatchat.voice")

VOICE_POLL = "voice-poll"
STREAMING_ERROR_MESSAGE = "Voice error. Try again."


class VoiceListener(Protocol):
    """Receiver of backend events (implemented by the capture controller)."""

    def on_partial(self, text: str) -> None: ...

    def on_transcript(self, text: str) -> None: ...

    def on_end(self) -> None: ...

    def on_error(self, error: VoiceError) -> None: ...


class VoiceBackend(Protocol):
    """Common surface of every recognizer backend."""

    kind: BackendKind

    @property
    def active(self) -> bool: ...

    def bind(self, listener: VoiceListener) -> None: ...

    def start(self) -> bool: ...

    def stop(self) -> None: ...


class SpeechRecognizer(Protocol):
    """Push-based in-process recognizer."""

    continuous: bool
    interim_results: bool
    lang: str
    on_result: Optional[Callable[[str, bool], None]]
    on_end: Optional[Callable[[], None]]
    on_error: Optional[Callable[[str], None]]

    def start(self) -> None: ...

    def stop(self) -> None: ...


class NativeVoiceBackend:
    """Host recognizer reachable only through destructive-read queries.

    A poll loop checks, in priority order, for a pending error, a pending
    transcript, and the end of listening; the first hit stops the loop and is
    forwarded as an event.
    """

    kind = BackendKind.NATIVE

    def __init__(self, bridge: HostBridge, scheduler: Scheduler, *, poll_interval: float) -> None:
        self.bridge = bridge
        self.scheduler = scheduler
        self.poll_interval = poll_interval
        self._listener: VoiceListener | None = None

    @property
    def active(self) -> bool:
        return self.scheduler.is_running(VOICE_POLL)

    def bind(self, listener: VoiceListener) -> None:
        self._listener = listener

    def start(self) -> bool:
        if not self.bridge.start_native_voice():
            return False
        self.scheduler.start_loop(VOICE_POLL, self.poll_interval, self.poll_once, replace=True)
        return True

    def stop(self) -> None:
        self.scheduler.cancel(VOICE_POLL)
        self.bridge.stop_native_voice()

    def poll_once(self) -> None:
        """Run one poll cycle; at most one event is emitted."""
        listener = self._listener
        if listener is None:
            return
        error = self.bridge.consume_native_voice_error()
        if error:
            self.scheduler.cancel(VOICE_POLL)
            listener.on_error(VoiceError(message=error, code=error, fatal=is_fatal_voice_error(error)))
            return
        text = self.bridge.consume_native_voice_transcript()
        if text:
            self.scheduler.cancel(VOICE_POLL)
            listener.on_transcript(text)
            return
        if not self.bridge.is_native_voice_listening():
            self.scheduler.cancel(VOICE_POLL)
            listener.on_end()


class StreamingVoiceBackend:
    """In-process recognizer delivering interim/final results as callbacks."""

    kind = BackendKind.STREAMING

    def __init__(self, recognizer: SpeechRecognizer, *, locale: str) -> None:
        self.recognizer = recognizer
        recognizer.continuous = False
        recognizer.interim_results = True
        recognizer.lang = locale
        recognizer.on_result = self._handle_result
        recognizer.on_end = self._handle_end
        recognizer.on_error = self._handle_error
        self._listener: VoiceListener | None = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def bind(self, listener: VoiceListener) -> None:
        self._listener = listener

    def start(self) -> bool:
        try:
            self.recognizer.start()
        except RecognizerBusyError:
            logger.info("Recognizer already capturing")
            return False
        self._active = True
        return True

    def stop(self) -> None:
        self._active = False
        self.recognizer.stop()

    def _handle_result(self, text: str, is_final: bool) -> None:
        if self._listener is None:
            return
        if is_final:
            self._listener.on_transcript(text)
        else:
            self._listener.on_partial(text)

    def _handle_end(self) -> None:
        self._active = False
        if self._listener is not None:
            self._listener.on_end()

    def _handle_error(self, code: str) -> None:
        self._active = False
        if self._listener is not None:
            self._listener.on_error(
                VoiceError(message=STREAMING_ERROR_MESSAGE, code=code, fatal=is_fatal_voice_error(code))
            )


def select_backend(
    settings: WidgetSettings,
    scheduler: Scheduler,
    *,
    bridge: HostBridge | None = None,
    recognizer: SpeechRecognizer | None = None,
) -> VoiceBackend | None:
    """Prefer the host recognizer, then the in-process one, else None."""
    if bridge is not None and probe_native_voice(bridge):
        logger.info("Voice backend: native host recognizer")
        return NativeVoiceBackend(bridge, scheduler, poll_interval=settings.voice_poll_interval)
    if recognizer is not None:
        logger.info("Voice backend: in-process streaming recognizer")
        return StreamingVoiceBackend(recognizer, locale=settings.voice_locale)
    logger.info("Voice capture not supported on this host")
    return None
