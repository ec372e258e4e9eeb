"""Shared mutable state for the widget client."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class VoiceState(str, Enum):
    """Lifecycle of the voice capture session."""

    IDLE = "idle"
    LISTENING = "listening"
    RESTARTING = "restarting"
    ERROR = "error"


class BackendKind(str, Enum):
    """Which recognizer drives voice capture."""

    NATIVE = "native"
    STREAMING = "streaming"


@dataclass(slots=True)
class VoiceSession:
    """Voice capture state; one backend at most."""

    backend: BackendKind | None = None
    state: VoiceState = VoiceState.IDLE
    enabled: bool = False

    @property
    def listening(self) -> bool:
        return self.state is VoiceState.LISTENING


@dataclass(slots=True)
class ChatExchange:
    """A single in-flight chat request."""

    request_text: str
    exchange_id: str = ""
    in_flight: bool = True
    status_messages: list[str] = field(default_factory=list)
    thinking: bool = True
    started_at: float = field(default_factory=time.monotonic)


@dataclass(slots=True)
class HistoryCursor:
    """Position while browsing the input history (-1 means not browsing)."""

    index: int = -1
    saved_draft: str = ""

    def reset(self) -> None:
        self.index = -1
        self.saved_draft = ""

    @property
    def browsing(self) -> bool:
        return self.index >= 0


@dataclass(slots=True)
class Session:
    """The one session object shared by every loop and controller."""

    voice: VoiceSession = field(default_factory=VoiceSession)
    exchange: ChatExchange | None = None
    cursor: HistoryCursor = field(default_factory=HistoryCursor)
    draft: str = ""
    expanded: bool = False
    closed: bool = False

    @property
    def in_flight(self) -> bool:
        return self.exchange is not None and self.exchange.in_flight
