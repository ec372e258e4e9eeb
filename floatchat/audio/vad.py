"""Voice activity detection used to segment utterances."""

from __future__ import annotations

import webrtcvad


_VALID_SAMPLE_RATES = (8000, 16_000, 32_000, 48_000)
_VALID_FRAME_DURATIONS_MS = (10, 20, 30)


class VoiceActivityDetector:
    """Wrapper around the WebRTC VAD implementation."""

    def __init__(self, aggressiveness: int = 2) -> None:
        self.aggressiveness = max(0, min(3, aggressiveness))
        self._vad = webrtcvad.Vad(self.aggressiveness)

    def is_speech(self, frame: bytes, sample_rate: int) -> bool:
        """Return True when the frame contains speech."""
        if sample_rate not in _VALID_SAMPLE_RATES:
            return True
        return self._vad.is_speech(self._fit_frame(frame, sample_rate), sample_rate)

    @staticmethod
    def _fit_frame(frame: bytes, sample_rate: int) -> bytes:
        """Pad or trim to the closest frame length WebRTC VAD accepts."""
        samples = len(frame) // 2  # pcm_s16le
        if samples == 0:
            return bytes(sample_rate * _VALID_FRAME_DURATIONS_MS[0] // 1000 * 2)
        target = min(
            (sample_rate * duration // 1000 for duration in _VALID_FRAME_DURATIONS_MS),
            key=lambda expected: abs(expected - samples),
        )
        target_bytes = target * 2
        if len(frame) >= target_bytes:
            return frame[:target_bytes]
        return frame + bytes(target_bytes - len(frame))
