"""Assembly and console entry point for the widget client."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from .config.settings import WidgetSettings, get_settings
from .core.logger import get_logger
from .runtime.orchestrator import WidgetOrchestrator
from .services.api import WidgetAPI
from .ui.presenter import ConsolePresenter, SessionPresenter
from .voice.backends import SpeechRecognizer
from .voice.bridge import HostBridge


logger = get_logger("floatchat.widget")

COMMANDS_HELP = "Commands: /voice /prev /next /clear /quit (empty line sends the draft)"


def build_orchestrator(
    settings: WidgetSettings,
    presenter: SessionPresenter,
    *,
    bridge: HostBridge | None = None,
    recognizer: SpeechRecognizer | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> WidgetOrchestrator:
    """Wire an orchestrator; builds the local recognizer when configured."""
    if recognizer is None and settings.whisper_model:
        try:
            from .audio.recognizer import build_local_recognizer

            recognizer = build_local_recognizer(settings)
        except (ImportError, OSError) as exc:
            logger.warning("Local recognizer unavailable: %s", exc)
    api = WidgetAPI(settings, transport=transport)
    return WidgetOrchestrator(settings, presenter, api, bridge=bridge, recognizer=recognizer)


async def run_console(settings: WidgetSettings, presenter: ConsolePresenter | None = None) -> None:
    """Interactive terminal widget; input is read off the event loop."""
    presenter = presenter or ConsolePresenter()
    orchestrator = build_orchestrator(settings, presenter)
    loop = asyncio.get_running_loop()
    pending: set[asyncio.Task[Any]] = set()
    presenter.set_voice_status_text(COMMANDS_HELP, True)
    orchestrator.expand()
    await orchestrator.start()
    try:
        while True:
            try:
                line = await loop.run_in_executor(None, input, "")
            except EOFError:
                break
            command = line.strip()
            if command == "/quit":
                break
            if command == "/voice":
                orchestrator.toggle_voice()
            elif command == "/clear":
                orchestrator.clear_chat()
            elif command == "/prev":
                orchestrator.recall_previous()
            elif command == "/next":
                orchestrator.recall_next()
            else:
                if command:
                    orchestrator.update_draft(line)
                task = asyncio.create_task(orchestrator.submit())
                pending.add(task)
                task.add_done_callback(pending.discard)
    finally:
        orchestrator.collapse()
        for task in list(pending):
            task.cancel()
        await orchestrator.shutdown()


def run() -> None:
    """Start the console widget."""
    asyncio.run(run_console(get_settings()))
