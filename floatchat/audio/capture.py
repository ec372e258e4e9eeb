"""Microphone capture feeding the in-process recognizer."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Callable

import sounddevice as sd

from ..core.logger import get_logger


logger = get_logger("floatchat.audio")

FrameConsumer = Callable[[bytes], None]


@dataclass(slots=True)
class CaptureConfig:
    """Microphone capture configuration."""

    sample_rate: int = 16_000
    channels: int = 1
    frame_duration_ms: int = 30
    device_name: str | None = None

    @property
    def frame_bytes(self) -> int:
        return int(self.sample_rate * self.frame_duration_ms / 1000) * 2 * self.channels


class MicrophoneCapture:
    """Raw int16 input stream; frames arrive on the PortAudio thread."""

    def __init__(self, config: CaptureConfig | None = None) -> None:
        self.config = config or CaptureConfig()
        self._consumer: FrameConsumer | None = None
        self._stream: sd.RawInputStream | None = None
        self._lock = Lock()

    @property
    def running(self) -> bool:
        return self._stream is not None

    def bind(self, consumer: FrameConsumer) -> None:
        self._consumer = consumer

    def start(self) -> None:
        """Open the input stream (raises ``sd.PortAudioError`` on failure)."""
        if self._consumer is None:
            raise RuntimeError("No audio consumer registered.")
        with self._lock:
            if self._stream is not None:
                return
            stream = sd.RawInputStream(
                samplerate=self.config.sample_rate,
                channels=self.config.channels,
                dtype="int16",
                blocksize=int(self.config.sample_rate * self.config.frame_duration_ms / 1000),
                callback=self._on_frame,
                device=self.config.device_name,
            )
            stream.start()
            self._stream = stream
            logger.debug("Microphone capture started")

    def stop(self) -> None:
        with self._lock:
            stream, self._stream = self._stream, None
        if stream is None:
            return
        stream.stop()
        stream.close()
        logger.debug("Microphone capture stopped")

    def _on_frame(self, indata, frames, time, status) -> None:  # noqa: ANN001
        if status:  # pragma: no cover
            logger.warning("Microphone status: %s", status)
        consumer = self._consumer
        if consumer is not None:
            consumer(bytes(indata))
