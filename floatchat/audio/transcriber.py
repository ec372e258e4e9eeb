"""ASR powered by faster-whisper."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from faster_whisper import WhisperModel


@dataclass(slots=True)
class WhisperConfig:
    """Configuration for the faster-whisper engine."""

    model: str
    device: str = "cpu"
    compute_type: str = "int8"
    locale: str = "en-US"

    @property
    def language(self) -> str:
        return self.locale.split("-")[0].lower() or "en"


class WhisperTranscriber:
    """Thin wrapper around WhisperModel working on raw PCM."""

    def __init__(self, config: WhisperConfig) -> None:
        self.config = config
        self.model = WhisperModel(
            config.model,
            device=config.device,
            compute_type=config.compute_type,
        )

    def transcribe_pcm(self, pcm: bytes) -> str:
        """Transcribe 16 kHz mono int16 audio; blocking, run it off the loop."""
        if not pcm:
            return ""
        audio = np.frombuffer(pcm, dtype=np.int16).astype(np.float32) / 32768.0
        segments, _ = self.model.transcribe(audio, language=self.config.language, vad_filter=False)
        return " ".join(segment.text.strip() for segment in segments).strip()
