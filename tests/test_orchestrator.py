import httpx
import pytest

from floatchat.runtime.dispatcher import ASYNC_LOOP
from floatchat.runtime.orchestrator import WidgetOrchestrator
from floatchat.services.api import WidgetAPI
from floatchat.state.session import BackendKind


def _orchestrator(settings, presenter, api, **kwargs) -> WidgetOrchestrator:
    return WidgetOrchestrator(settings, presenter, api, **kwargs)


@pytest.mark.asyncio
async def test_start_renders_history_and_starts_async_feed(settings, presenter, backend, make_api) -> None:
    backend.history = [
        {"text": "list my files", "isUser": True, "time": "09:00"},
        {"text": "Here they are.", "isUser": False, "time": "09:01"},
    ]
    orchestrator = _orchestrator(settings, presenter, make_api(backend.app))
    await orchestrator.start()

    assert presenter.calls("append_history_message") == [
        ("list my files", True, "09:00"),
        ("Here they are.", False, "09:01"),
    ]
    assert orchestrator.history.entries == ["list my files"]
    assert orchestrator.scheduler.is_running(ASYNC_LOOP)

    await orchestrator.shutdown()
    assert not orchestrator.scheduler.is_running(ASYNC_LOOP)
    assert orchestrator.session.closed is True


@pytest.mark.asyncio
async def test_greeting_when_history_is_empty(settings, presenter, backend, make_api) -> None:
    orchestrator = _orchestrator(settings, presenter, make_api(backend.app))
    assert await orchestrator.load_history() == 0
    assert presenter.messages() == [("bot", settings.greeting)]
    await orchestrator.shutdown()


@pytest.mark.asyncio
async def test_greeting_when_backend_unreachable(settings, presenter, make_api) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    orchestrator = _orchestrator(settings, presenter, make_api(transport=httpx.MockTransport(handler)))
    await orchestrator.load_history()
    assert presenter.messages() == [("bot", settings.greeting)]
    await orchestrator.shutdown()


@pytest.mark.asyncio
async def test_recall_then_submit_draft(settings, presenter, backend, make_api) -> None:
    orchestrator = _orchestrator(settings, presenter, make_api(backend.app))
    await orchestrator.submit("first")
    await orchestrator.submit("second")

    orchestrator.update_draft("unsent")
    assert orchestrator.recall_previous() == "second"
    assert orchestrator.recall_previous() == "first"
    assert orchestrator.session.draft == "first"
    assert presenter.calls("set_input_text")[-1] == ("first",)
    assert orchestrator.recall_next() == "second"
    assert orchestrator.recall_next() == "unsent"

    assert orchestrator.recall_previous() == "second"
    assert await orchestrator.submit() is True
    assert backend.chat_requests == ["first", "second", "second"]
    assert orchestrator.session.cursor.browsing is False
    assert orchestrator.history.entries == ["first", "second"]
    await orchestrator.shutdown()


@pytest.mark.asyncio
async def test_panel_lifecycle_notifies_host(settings, presenter, backend, make_api, bridge) -> None:
    bridge.available = False
    orchestrator = _orchestrator(settings, presenter, make_api(backend.app), bridge=bridge)
    orchestrator.expand()
    assert orchestrator.session.expanded is True
    orchestrator.collapse()
    assert orchestrator.session.expanded is False
    assert bridge.calls == ["expand", "collapse"]
    await orchestrator.shutdown()


@pytest.mark.asyncio
async def test_host_notification_failure_is_swallowed(settings, presenter, backend, make_api, bridge) -> None:
    def broken() -> None:
        raise RuntimeError("host gone")

    bridge.expand = broken
    orchestrator = _orchestrator(settings, presenter, make_api(backend.app), bridge=bridge)
    orchestrator.expand()
    assert orchestrator.session.expanded is True
    await orchestrator.shutdown()


@pytest.mark.asyncio
async def test_clear_chat(settings, presenter, backend, make_api) -> None:
    orchestrator = _orchestrator(settings, presenter, make_api(backend.app))
    orchestrator.clear_chat()
    assert presenter.names("clear_messages", "append_bot_message") == ["clear_messages", "append_bot_message"]
    assert presenter.messages() == [("bot", settings.cleared_message)]
    await orchestrator.shutdown()


@pytest.mark.asyncio
async def test_voice_backend_is_resolved_once(settings, presenter, backend, make_api, bridge, recognizer) -> None:
    orchestrator = _orchestrator(settings, presenter, make_api(backend.app), bridge=bridge, recognizer=recognizer)
    assert orchestrator.session.voice.backend is BackendKind.NATIVE
    bridge.available = False
    assert orchestrator.voice.backend.kind is BackendKind.NATIVE
    await orchestrator.shutdown()


@pytest.mark.asyncio
async def test_open_path(settings, presenter, backend, make_api) -> None:
    orchestrator = _orchestrator(settings, presenter, make_api(backend.app))
    result = await orchestrator.open_path("D:\\reports")
    assert result["status"] == "ok"
    assert backend.opened == ["D:\\reports"]
    await orchestrator.shutdown()


@pytest.mark.asyncio
async def test_shutdown_is_idempotent(settings, presenter, backend) -> None:
    api = WidgetAPI(settings, transport=httpx.ASGITransport(app=backend.app))
    orchestrator = _orchestrator(settings, presenter, api)
    await orchestrator.shutdown()
    await orchestrator.shutdown()
    assert orchestrator.session.closed is True
