"""HTTP client used to talk to the chat backend."""

from __future__ import annotations

from typing import Any

import httpx

from ..config.settings import WidgetSettings
from ..core.errors import ChatTransportError
from .schemas import AsyncResult, ChatReply, HistoryMessage, StatusBatch


class WidgetAPI:
    """Async client for the widget backend."""

    def __init__(
        self,
        settings: WidgetSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        timeout = httpx.Timeout(
            connect=settings.connect_timeout,
            read=settings.read_timeout,
            write=settings.connect_timeout,
            pool=None,
        )
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            verify=settings.verify_ssl,
            timeout=timeout,
            transport=transport,
        )

    async def send_chat(self, message: str) -> ChatReply:
        """Post a user message and wait for the full reply."""
        data = await self._request("POST", "/api/chat", json={"message": message})
        return ChatReply.from_payload(data)

    async def poll_status(self) -> StatusBatch:
        """Fetch status lines produced while a reply is being computed."""
        data = await self._request("GET", "/api/chat/status")
        return StatusBatch.from_payload(data)

    async def poll_async(self) -> AsyncResult:
        """Fetch the next out-of-band result, if any."""
        data = await self._request("GET", "/api/chat/async")
        return AsyncResult.from_payload(data)

    async def fetch_history(self) -> list[HistoryMessage]:
        """Return the server-side conversation history."""
        data = await self._request("GET", "/api/chat/history")
        raw = data.get("messages") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            return []
        return [HistoryMessage.from_payload(item) for item in raw if isinstance(item, dict)]

    async def open_path(self, path: str) -> dict[str, Any]:
        """Ask the host to reveal a file or folder."""
        data = await self._request("POST", "/api/open-path", json={"path": path})
        return data if isinstance(data, dict) else {}

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ChatTransportError(f"Timeout talking to {url}.") from exc
        except httpx.HTTPError as exc:
            raise ChatTransportError(f"{method} {url} failed: {exc}") from exc
        try:
            return response.json()
        except ValueError as exc:
            snippet = response.text[:200]
            raise ChatTransportError(f"Non-JSON response from {url}: {snippet}") from exc
