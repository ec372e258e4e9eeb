"""Capability interface exposed by the desktop host embedding the widget."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..core.logger import get_logger


logger = get_logger("floatchat.voice")


@runtime_checkable
class HostBridge(Protocol):
    """Synchronous functions the host exposes to the widget.

    The native recognizer has no event delivery: results and errors are read
    with destructive ``consume_*`` calls that return the value and clear it.
    """

    def is_native_voice_available(self) -> bool: ...

    def start_native_voice(self) -> bool: ...

    def stop_native_voice(self) -> None: ...

    def is_native_voice_listening(self) -> bool: ...

    def consume_native_voice_transcript(self) -> str | None: ...

    def consume_native_voice_error(self) -> str | None: ...

    def expand(self) -> None: ...

    def collapse(self) -> None: ...


class NullHostBridge:
    """Bridge used when the widget runs outside a desktop host."""

    def is_native_voice_available(self) -> bool:
        return False

    def start_native_voice(self) -> bool:
        return False

    def stop_native_voice(self) -> None:
        return None

    def is_native_voice_listening(self) -> bool:
        return False

    def consume_native_voice_transcript(self) -> str | None:
        return None

    def consume_native_voice_error(self) -> str | None:
        return None

    def expand(self) -> None:
        return None

    def collapse(self) -> None:
        return None


def probe_native_voice(bridge: HostBridge | None) -> bool:
    """Return True when the host provides a usable native recognizer."""
    if bridge is None:
        return False
    try:
        return bool(bridge.is_native_voice_available())
    except Exception:
        logger.warning("Native voice probe failed", exc_info=True)
        return False
