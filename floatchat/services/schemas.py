"""Data schemas exchanged with the chat backend."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import MalformedEnvelopeError


AUDIO_RESULT_PREFIX = "__AUDIO_RESULT__"


@dataclass(slots=True)
class ChatReply:
    """Answer to ``POST /api/chat``."""

    reply: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> "ChatReply":
        if not isinstance(payload, dict):
            return cls()
        raw = payload.get("reply")
        return cls(reply=raw if isinstance(raw, str) else "")


@dataclass(slots=True)
class StatusBatch:
    """Status lines drained from ``GET /api/chat/status``."""

    messages: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> "StatusBatch":
        if not isinstance(payload, dict):
            return cls()
        raw = payload.get("messages") or []
        if not isinstance(raw, list):
            return cls()
        return cls(messages=[str(item) for item in raw if item is not None and str(item)])


@dataclass(slots=True)
class AsyncResult:
    """Out-of-band result polled from ``GET /api/chat/async``."""

    has_result: bool = False
    reply: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "AsyncResult":
        if not isinstance(payload, dict):
            return cls()
        reply = payload.get("reply")
        return cls(
            has_result=bool(payload.get("hasResult", False)),
            reply=reply if isinstance(reply, str) else None,
        )


@dataclass(slots=True)
class HistoryMessage:
    """Timeline entry returned by ``GET /api/chat/history``."""

    text: str
    is_user: bool = False
    time: str = ""

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "HistoryMessage":
        return cls(
            text=str(payload.get("text") or ""),
            is_user=bool(payload.get("isUser", False)),
            time=str(payload.get("time") or ""),
        )


@dataclass(slots=True)
class TranscriptEnvelope:
    """Voice result carrying the user transcript and a pre-computed reply."""

    transcript: str
    reply: str | None = None
    raw: str = ""


def parse_voice_payload(raw: str) -> TranscriptEnvelope | str:
    """Return an envelope for prefixed payloads, the bare text otherwise.

    Raises ``MalformedEnvelopeError`` when the prefix is present but the body
    is not a JSON object.
    """
    if not raw.startswith(AUDIO_RESULT_PREFIX):
        return raw
    try:
        payload = json.loads(raw[len(AUDIO_RESULT_PREFIX) :])
    except json.JSONDecodeError as exc:
        raise MalformedEnvelopeError(raw) from exc
    if not isinstance(payload, dict):
        raise MalformedEnvelopeError(raw)
    transcript = payload.get("transcript")
    reply = payload.get("reply")
    return TranscriptEnvelope(
        transcript=transcript if isinstance(transcript, str) else "",
        reply=reply if isinstance(reply, str) and reply else None,
        raw=raw,
    )
