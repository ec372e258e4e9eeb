"""Bounded log of previously sent inputs with arrow-key style recall."""

from __future__ import annotations

from collections import deque
from typing import Iterator

from ..state.session import HistoryCursor


class InputHistoryStore:
    """Order-preserving input history, oldest entry first."""

    def __init__(self, capacity: int = 200, cursor: HistoryCursor | None = None) -> None:
        self.capacity = max(1, capacity)
        self.cursor = cursor or HistoryCursor()
        self._entries: deque[str] = deque(maxlen=self.capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    def append(self, text: str) -> bool:
        """Store ``text`` unless blank or equal to the latest entry."""
        if not text or not text.strip():
            return False
        trimmed = text.strip()
        if self._entries and self._entries[-1] == trimmed:
            return False
        # deque(maxlen) evicts the oldest entry
        self._entries.append(trimmed)
        return True

    def recall_previous(self, draft: str = "") -> str | None:
        """Step back towards older entries; clamps at the oldest one."""
        if not self._entries:
            return None
        if self.cursor.index == -1:
            self.cursor.saved_draft = draft or ""
        if self.cursor.index < len(self._entries) - 1:
            self.cursor.index += 1
        return self._entry_at_cursor()

    def recall_next(self) -> str | None:
        """Step forward; past the newest entry the saved draft comes back."""
        if self.cursor.index < 0:
            return None
        self.cursor.index -= 1
        if self.cursor.index < 0:
            draft = self.cursor.saved_draft
            self.cursor.reset()
            return draft
        return self._entry_at_cursor()

    def reset_cursor(self) -> None:
        self.cursor.reset()

    def _entry_at_cursor(self) -> str:
        return self._entries[len(self._entries) - 1 - self.cursor.index]
