"""Push-based speech recognizer running in-process.

Microphone frames arrive on the PortAudio thread and hop onto the event loop;
VAD segments them into one utterance, which faster-whisper transcribes in the
default executor. Results are pushed through ``on_result``/``on_end``/
``on_error`` the way a browser speech recognizer reports them.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol

from ..core.errors import RecognizerBusyError
from ..core.logger import get_logger

if TYPE_CHECKING:
    from ..config.settings import WidgetSettings


logger = get_logger("floatchat.audio")

CAPTURE_ERROR = "audio-capture"
TRANSCRIBE_ERROR = "transcription-failed"


class FrameSource(Protocol):
    def bind(self, consumer: Callable[[bytes], None]) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


class SpeechDetector(Protocol):
    def is_speech(self, frame: bytes, sample_rate: int) -> bool: ...


class Transcriber(Protocol):
    def transcribe_pcm(self, pcm: bytes) -> str: ...


class LocalSpeechRecognizer:
    """Single-utterance recognizer over a microphone, a VAD and an ASR engine."""

    def __init__(
        self,
        capture: FrameSource,
        vad: SpeechDetector,
        transcriber: Transcriber,
        *,
        sample_rate: int = 16_000,
        trailing_silence_ms: int = 800,
        max_utterance_ms: int = 15_000,
        no_speech_timeout_ms: int = 8_000,
        interim_interval_ms: int = 1_000,
    ) -> None:
        self.capture = capture
        self.vad = vad
        self.transcriber = transcriber
        self.sample_rate = sample_rate
        self.trailing_silence_ms = trailing_silence_ms
        self.max_utterance_ms = max_utterance_ms
        self.no_speech_timeout_ms = no_speech_timeout_ms
        self.interim_interval_ms = interim_interval_ms

        self.continuous = False
        self.interim_results = True
        self.lang = "en-US"
        self.on_result: Optional[Callable[[str, bool], None]] = None
        self.on_end: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

        self._loop: asyncio.AbstractEventLoop | None = None
        self._active = False
        self._generation = 0
        self._tasks: set[asyncio.Task[Any]] = set()
        self._reset_utterance()
        capture.bind(self._on_audio_frame)

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        if self._active:
            raise RecognizerBusyError("Recognizer already capturing.")
        self._loop = asyncio.get_running_loop()
        self._generation += 1
        self._reset_utterance()
        self._active = True
        try:
            self.capture.start()
        except Exception:
            logger.warning("Microphone unavailable", exc_info=True)
            self._active = False
            self._loop.call_soon(self._emit_error, CAPTURE_ERROR, self._generation)

    def stop(self) -> None:
        self._generation += 1
        self._active = False
        self.capture.stop()
        for task in list(self._tasks):
            task.cancel()

    # ------------------------------------------------------------------ #
    # Frame handling
    # ------------------------------------------------------------------ #
    def _on_audio_frame(self, frame: bytes) -> None:
        """Called from the audio thread."""
        loop = self._loop
        if loop is None or not self._active:
            return
        try:
            loop.call_soon_threadsafe(self._ingest, frame, self._generation)
        except RuntimeError:  # pragma: no cover - loop closed
            self._active = False

    def _ingest(self, frame: bytes, generation: int) -> None:
        if not self._active or generation != self._generation:
            return
        duration_ms = len(frame) * 1000 // (2 * self.sample_rate)
        if self.vad.is_speech(frame, self.sample_rate):
            self._heard_speech = True
            self._silence_ms = 0
        elif self._heard_speech:
            self._silence_ms += duration_ms
        else:
            self._waited_ms += duration_ms
            if self._waited_ms >= self.no_speech_timeout_ms:
                self._finish(None)
            return

        self._buffer.extend(frame)
        self._utterance_ms += duration_ms
        self._since_interim_ms += duration_ms
        if self._silence_ms >= self.trailing_silence_ms or self._utterance_ms >= self.max_utterance_ms:
            self._finish(bytes(self._buffer))
        elif self.interim_results and self._since_interim_ms >= self.interim_interval_ms and not self._interim_pending:
            self._since_interim_ms = 0
            self._interim_pending = True
            self._spawn(self._transcribe_interim(bytes(self._buffer), generation))

    def _finish(self, pcm: bytes | None) -> None:
        generation = self._generation
        if self.continuous and pcm is not None:
            self._reset_utterance()
        else:
            self._active = False
            self.capture.stop()
        if pcm is None:
            self._emit_end(generation)
            return
        self._spawn(self._transcribe_final(pcm, generation))

    # ------------------------------------------------------------------ #
    # Transcription
    # ------------------------------------------------------------------ #
    async def _transcribe_final(self, pcm: bytes, generation: int) -> None:
        loop = asyncio.get_running_loop()
        try:
            text = await loop.run_in_executor(None, self.transcriber.transcribe_pcm, pcm)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Transcription failed")
            self._emit_error(TRANSCRIBE_ERROR, generation)
            return
        if generation != self._generation:
            return
        if text:
            self._emit_result(text, True)
        if not self.continuous:
            self._emit_end(generation)

    async def _transcribe_interim(self, pcm: bytes, generation: int) -> None:
        loop = asyncio.get_running_loop()
        try:
            text = await loop.run_in_executor(None, self.transcriber.transcribe_pcm, pcm)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.debug("Interim transcription failed", exc_info=True)
            return
        finally:
            self._interim_pending = False
        if text and self._active and generation == self._generation:
            self._emit_result(text, False)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _reset_utterance(self) -> None:
        self._buffer = bytearray()
        self._heard_speech = False
        self._silence_ms = 0
        self._waited_ms = 0
        self._utterance_ms = 0
        self._since_interim_ms = 0
        self._interim_pending = False

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _emit_result(self, text: str, final: bool) -> None:
        if self.on_result:
            self.on_result(text, final)

    def _emit_end(self, generation: int) -> None:
        if generation == self._generation and self.on_end:
            self.on_end()

    def _emit_error(self, code: str, generation: int) -> None:
        if generation == self._generation and self.on_error:
            self.on_error(code)


def build_local_recognizer(settings: "WidgetSettings") -> LocalSpeechRecognizer:
    """Assemble the recognizer from the optional audio stack (lazy imports)."""
    from .capture import CaptureConfig, MicrophoneCapture
    from .transcriber import WhisperConfig, WhisperTranscriber
    from .vad import VoiceActivityDetector

    if not settings.whisper_model:
        raise ValueError("whisper_model is not configured.")
    capture = MicrophoneCapture(CaptureConfig(device_name=settings.input_device))
    transcriber = WhisperTranscriber(
        WhisperConfig(
            model=settings.whisper_model,
            device=settings.whisper_device,
            compute_type=settings.whisper_compute_type,
            locale=settings.voice_locale,
        )
    )
    return LocalSpeechRecognizer(
        capture,
        VoiceActivityDetector(settings.vad_aggressiveness),
        transcriber,
        sample_rate=capture.config.sample_rate,
    )
