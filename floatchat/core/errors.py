from __future__ import annotations

from dataclasses import dataclass


FATAL_VOICE_CODES = frozenset({"not-allowed", "service-not-allowed"})
_FATAL_VOICE_MARKERS = ("not-allowed", "not allowed", "permission denied", "access denied")


class WidgetError(Exception):
    """Base class for widget client errors."""


class ChatTransportError(WidgetError):
    """The backend could not be reached or answered with an unusable payload."""


class MalformedEnvelopeError(WidgetError, ValueError):
    """A prefixed voice payload whose JSON body cannot be decoded."""

    def __init__(self, raw: str) -> None:
        super().__init__(f"Malformed voice payload: {raw[:80]!r}")
        self.raw = raw


class RecognizerBusyError(WidgetError):
    """The in-process recognizer is already capturing."""


@dataclass(slots=True)
class VoiceError:
    """Error reported by a voice backend."""

    message: str
    code: str = ""
    fatal: bool = False


def is_fatal_voice_error(code: str | None) -> bool:
    """Permission-class failures are fatal; everything else is transient."""
    if not code:
        return False
    normalized = code.strip().lower()
    if normalized in FATAL_VOICE_CODES:
        return True
    return any(marker in normalized for marker in _FATAL_VOICE_MARKERS)
