"""Single-flight chat dispatch with status and async-result polling."""

from __future__ import annotations

from ..config.settings import WidgetSettings
from ..core.errors import ChatTransportError
from ..core.logger import get_logger
from ..core.trace import new_exchange_id, set_exchange_id
from ..services.api import WidgetAPI
from ..state.session import ChatExchange, Session
from ..ui.presenter import SessionPresenter
from .history import InputHistoryStore
from .scheduler import Scheduler


logger = get_logger("floatchat.dispatch")

STATUS_LOOP = "chat-status"
ASYNC_LOOP = "chat-async"


class ChatDispatcher:
    """Sends user messages and reconciles replies into the timeline."""

    def __init__(
        self,
        session: Session,
        api: WidgetAPI,
        presenter: SessionPresenter,
        history: InputHistoryStore,
        scheduler: Scheduler,
        settings: WidgetSettings,
    ) -> None:
        self.session = session
        self.api = api
        self.presenter = presenter
        self.history = history
        self.scheduler = scheduler
        self.settings = settings

    # ------------------------------------------------------------------ #
    # Sending
    # ------------------------------------------------------------------ #
    async def send(self, text: str) -> bool:
        """Send ``text``; returns False when the message was dropped.

        Blank input and a send while another exchange is in flight are
        dropped, not queued.
        """
        if not text or not text.strip():
            return False
        if self.session.in_flight:
            logger.info("Send dropped: an exchange is already in flight")
            return False

        message = text.strip()
        exchange = ChatExchange(request_text=message, exchange_id=new_exchange_id())
        self.session.exchange = exchange
        self.history.append(message)
        self.history.reset_cursor()
        self.session.draft = ""
        self.presenter.set_input_text("")
        self.presenter.append_user_message(message)
        self.presenter.show_thinking()
        self.start_status_polling()
        logger.info("Exchange started")

        try:
            try:
                reply = await self.api.send_chat(message)
            except ChatTransportError as exc:
                logger.warning("Chat request failed: %s", exc)
                self._finish(exchange, self.settings.fallback_reply)
            except Exception:
                logger.exception("Chat request raised unexpectedly")
                self._finish(exchange, self.settings.fallback_reply)
            else:
                self._finish(exchange, reply.reply or self.settings.empty_reply)
        finally:
            exchange.in_flight = False
            if self.session.exchange is exchange:
                self.session.exchange = None
                self.stop_status_polling()
            set_exchange_id(None)
        return True

    def _finish(self, exchange: ChatExchange, text: str) -> None:
        self.stop_status_polling()
        self.presenter.clear_status_lines()
        self.presenter.hide_thinking()
        exchange.thinking = False
        self.presenter.append_bot_message(text)
        logger.info("Exchange finished (%d status lines)", len(exchange.status_messages))

    # ------------------------------------------------------------------ #
    # Status sub-loop
    # ------------------------------------------------------------------ #
    def start_status_polling(self) -> bool:
        return self.scheduler.start_loop(STATUS_LOOP, self.settings.status_poll_interval, self.poll_status_once)

    def stop_status_polling(self) -> None:
        self.scheduler.cancel(STATUS_LOOP)

    async def poll_status_once(self) -> None:
        exchange = self.session.exchange
        if exchange is None or not exchange.in_flight:
            self.stop_status_polling()
            return
        try:
            batch = await self.api.poll_status()
        except ChatTransportError as exc:
            logger.debug("Status poll failed: %s", exc)
            return
        # the reply may have landed, or a new exchange begun, while we waited
        if self.session.exchange is not exchange or not exchange.in_flight:
            return
        fresh = self._unseen_lines(exchange.status_messages, batch.messages)
        if not fresh:
            return
        if exchange.thinking:
            self.presenter.hide_thinking()
            exchange.thinking = False
        for line in fresh:
            exchange.status_messages.append(line)
            self.presenter.append_status_line(line)

    @staticmethod
    def _unseen_lines(shown: list[str], batch: list[str]) -> list[str]:
        """Lines of ``batch`` not yet shown.

        A batch that starts with every line shown so far repeats them and
        only its tail is new; any other batch is taken whole, so a line the
        backend reports twice is shown twice.
        """
        if shown and batch[: len(shown)] == shown:
            return batch[len(shown):]
        return list(batch)

    # ------------------------------------------------------------------ #
    # Async-result sub-loop
    # ------------------------------------------------------------------ #
    def start_async_polling(self) -> bool:
        return self.scheduler.start_loop(ASYNC_LOOP, self.settings.async_poll_interval, self.poll_async_once)

    def stop_async_polling(self) -> None:
        self.scheduler.cancel(ASYNC_LOOP)

    async def poll_async_once(self) -> None:
        try:
            result = await self.api.poll_async()
        except ChatTransportError as exc:
            logger.debug("Async poll failed: %s", exc)
            return
        if self.session.closed:
            return
        if result.has_result and result.reply:
            logger.info("Async result delivered")
            self.presenter.append_bot_message(result.reply)
