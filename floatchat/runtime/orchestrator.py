"""Input/output orchestrator tying voice capture, dispatch and history together."""

from __future__ import annotations

from typing import Any, Union

from ..config.settings import WidgetSettings
from ..core.errors import ChatTransportError
from ..core.logger import get_logger
from ..services.api import WidgetAPI
from ..services.schemas import TranscriptEnvelope
from ..state.session import Session
from ..ui.presenter import SessionPresenter
from ..voice.backends import SpeechRecognizer, select_backend
from ..voice.bridge import HostBridge
from .dispatcher import ChatDispatcher
from .history import InputHistoryStore
from .scheduler import Scheduler
from .voice import VoiceCaptureController


logger = get_logger("floatchat.widget")


class WidgetOrchestrator:
    """Owns the session and wires every component to the presenter."""

    def __init__(
        self,
        settings: WidgetSettings,
        presenter: SessionPresenter,
        api: WidgetAPI,
        *,
        bridge: HostBridge | None = None,
        recognizer: SpeechRecognizer | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.settings = settings
        self.presenter = presenter
        self.api = api
        self.bridge = bridge
        self.session = Session()
        self.scheduler = scheduler or Scheduler()
        self.history = InputHistoryStore(settings.history_capacity, cursor=self.session.cursor)
        self.dispatcher = ChatDispatcher(
            self.session, api, presenter, self.history, self.scheduler, settings
        )
        backend = select_backend(settings, self.scheduler, bridge=bridge, recognizer=recognizer)
        self.voice = VoiceCaptureController(
            self.session,
            presenter,
            self.scheduler,
            settings,
            backend,
            on_transcript=self._log_transcript,
            on_error=self._log_voice_error,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    async def start(self) -> None:
        """Render the stored history and start the async-result feed."""
        await self.load_history()
        self.dispatcher.start_async_polling()

    async def shutdown(self) -> None:
        if self.session.closed:
            return
        self.session.closed = True
        self.voice.shutdown()
        self.scheduler.shutdown()
        await self.api.close()

    async def load_history(self) -> int:
        try:
            messages = await self.api.fetch_history()
        except ChatTransportError as exc:
            logger.warning("History unavailable: %s", exc)
            messages = []
        if not messages:
            self.presenter.append_bot_message(self.settings.greeting)
            return 0
        for message in messages:
            self.presenter.append_history_message(message.text, message.is_user, message.time)
            if message.is_user:
                self.history.append(message.text)
        return len(messages)

    # ------------------------------------------------------------------ #
    # User actions
    # ------------------------------------------------------------------ #
    async def submit(self, text: str | None = None) -> bool:
        """Send ``text`` (or the current draft when omitted)."""
        return await self.dispatcher.send(self.session.draft if text is None else text)

    def update_draft(self, text: str) -> None:
        self.session.draft = text

    def recall_previous(self) -> str | None:
        value = self.history.recall_previous(self.session.draft)
        if value is not None:
            self._show_draft(value)
        return value

    def recall_next(self) -> str | None:
        value = self.history.recall_next()
        if value is not None:
            self._show_draft(value)
        return value

    def toggle_voice(self) -> None:
        self.voice.toggle()

    def set_voice_enabled(self, enabled: bool) -> None:
        self.voice.set_enabled(enabled)

    def clear_chat(self) -> None:
        self.presenter.clear_messages()
        self.presenter.append_bot_message(self.settings.cleared_message)

    def expand(self) -> None:
        self.session.expanded = True
        self._notify_host("expand")

    def collapse(self) -> None:
        self.session.expanded = False
        self._notify_host("collapse")

    async def open_path(self, path: str) -> dict[str, Any]:
        try:
            return await self.api.open_path(path)
        except ChatTransportError as exc:
            logger.warning("open-path failed: %s", exc)
            return {"status": "error", "message": str(exc)}

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _show_draft(self, text: str) -> None:
        self.session.draft = text
        self.presenter.set_input_text(text)

    def _notify_host(self, method: str) -> None:
        if self.bridge is None:
            return
        try:
            getattr(self.bridge, method)()
        except Exception:
            logger.warning("Host %s notification failed", method, exc_info=True)

    @staticmethod
    def _log_transcript(payload: Union[str, TranscriptEnvelope]) -> None:
        kind = "envelope" if isinstance(payload, TranscriptEnvelope) else "text"
        logger.info("Voice transcript received (%s)", kind)

    @staticmethod
    def _log_voice_error(message: str) -> None:
        logger.warning("Voice error surfaced: %s", message)
