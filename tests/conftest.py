from __future__ import annotations

import asyncio
from typing import Any, Callable

import httpx
import pytest
from fastapi import FastAPI, HTTPException

from floatchat.config.settings import WidgetSettings
from floatchat.core.errors import RecognizerBusyError
from floatchat.services.api import WidgetAPI


class RecordingPresenter:
    """Presenter recording every call as ``(method, *args)``."""

    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []

    def __getattr__(self, name: str) -> Callable[..., None]:
        if name.startswith("_"):
            raise AttributeError(name)

        def _record(*args: Any) -> None:
            self.events.append((name, *args))

        return _record

    def messages(self) -> list[tuple[str, str]]:
        out: list[tuple[str, str]] = []
        for event in self.events:
            if event[0] == "append_user_message":
                out.append(("user", event[1]))
            elif event[0] == "append_bot_message":
                out.append(("bot", event[1]))
        return out

    def calls(self, name: str) -> list[tuple[Any, ...]]:
        return [event[1:] for event in self.events if event[0] == name]

    def names(self, *wanted: str) -> list[str]:
        return [event[0] for event in self.events if event[0] in wanted]


class FakeChatBackend:
    """In-process backend implementing the widget endpoints."""

    def __init__(self) -> None:
        self.chat_requests: list[str] = []
        self.status_batches: list[list[str]] = []
        self.async_results: list[dict[str, Any]] = []
        self.history: list[dict[str, Any]] = []
        self.opened: list[str] = []
        self.reply: str | None = "pong"
        self.fail_chat = False
        self.hold = False
        self.release = asyncio.Event()
        self.app = self._build_app()

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.post("/api/chat")
        async def chat(payload: dict) -> dict[str, Any]:
            self.chat_requests.append(payload.get("message"))
            if self.hold:
                await self.release.wait()
            if self.fail_chat:
                raise HTTPException(status_code=500, detail="boom")
            return {} if self.reply is None else {"reply": self.reply}

        @app.get("/api/chat/status")
        async def status() -> dict[str, Any]:
            batch = self.status_batches.pop(0) if self.status_batches else []
            return {"messages": batch}

        @app.get("/api/chat/async")
        async def poll_async() -> dict[str, Any]:
            if self.async_results:
                return self.async_results.pop(0)
            return {"hasResult": False}

        @app.get("/api/chat/history")
        async def history() -> dict[str, Any]:
            return {"messages": self.history}

        @app.post("/api/open-path")
        async def open_path(payload: dict) -> dict[str, Any]:
            self.opened.append(payload.get("path"))
            return {"status": "ok", "message": f"Opened: {payload.get('path')}"}

        return app


class FakeBridge:
    """Host bridge with destructive-read queues."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.start_results: list[bool] = []
        self.listening = False
        self.transcripts: list[str] = []
        self.errors: list[str] = []
        self.calls: list[str] = []
        self.double_starts = 0

    def is_native_voice_available(self) -> bool:
        return self.available

    def start_native_voice(self) -> bool:
        self.calls.append("start")
        if self.listening:
            self.double_starts += 1
        ok = self.start_results.pop(0) if self.start_results else True
        self.listening = ok
        return ok

    def stop_native_voice(self) -> None:
        self.calls.append("stop")
        self.listening = False

    def is_native_voice_listening(self) -> bool:
        return self.listening

    def consume_native_voice_transcript(self) -> str | None:
        return self.transcripts.pop(0) if self.transcripts else None

    def consume_native_voice_error(self) -> str | None:
        return self.errors.pop(0) if self.errors else None

    def expand(self) -> None:
        self.calls.append("expand")

    def collapse(self) -> None:
        self.calls.append("collapse")


class FakeRecognizer:
    """Push-based recognizer driven by the test."""

    def __init__(self) -> None:
        self.continuous = True
        self.interim_results = False
        self.lang = ""
        self.on_result = None
        self.on_end = None
        self.on_error = None
        self.capturing = False
        self.started = 0
        self.stopped = 0
        self.double_starts = 0

    def start(self) -> None:
        if self.capturing:
            self.double_starts += 1
            raise RecognizerBusyError("already started")
        self.capturing = True
        self.started += 1

    def stop(self) -> None:
        self.capturing = False
        self.stopped += 1

    def emit_result(self, text: str, final: bool) -> None:
        self.on_result(text, final)

    def emit_end(self) -> None:
        self.capturing = False
        self.on_end()

    def emit_error(self, code: str) -> None:
        self.capturing = False
        self.on_error(code)


@pytest.fixture
def settings() -> WidgetSettings:
    return WidgetSettings(
        base_url="http://test",
        status_poll_interval=0.01,
        async_poll_interval=0.01,
        voice_poll_interval=60.0,
        voice_settle_delay=0.0,
        voice_restart_delay=0.0,
        voice_error_restart_delay=0.0,
        log_dir=None,
    )


@pytest.fixture
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest.fixture
def backend() -> FakeChatBackend:
    return FakeChatBackend()


@pytest.fixture
def make_api(settings: WidgetSettings) -> Callable[..., WidgetAPI]:
    def _make(app: FastAPI | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> WidgetAPI:
        if transport is None:
            transport = httpx.ASGITransport(app=app)
        return WidgetAPI(settings, transport=transport)

    return _make


@pytest.fixture
def bridge() -> FakeBridge:
    return FakeBridge()


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait
