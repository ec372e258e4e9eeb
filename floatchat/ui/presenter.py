"""Sink receiving everything the orchestrator wants shown."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

import typer


class SessionPresenter(Protocol):
    """Rendering contract the runtime reports to.

    Within one exchange the calls arrive as: user message, thinking, status
    lines, then ``clear_status_lines``/``hide_thinking`` and one final bot
    message. ``hide_thinking`` and ``clear_status_lines`` must be idempotent.
    """

    def append_user_message(self, text: str) -> None: ...

    def append_bot_message(self, text: str) -> None: ...

    def append_history_message(self, text: str, is_user: bool, time: str) -> None: ...

    def clear_messages(self) -> None: ...

    def show_thinking(self) -> None: ...

    def hide_thinking(self) -> None: ...

    def append_status_line(self, text: str) -> None: ...

    def clear_status_lines(self) -> None: ...

    def set_voice_indicator(self, listening: bool) -> None: ...

    def set_voice_status_text(self, text: str, visible: bool) -> None: ...

    def set_input_text(self, text: str) -> None: ...


def time_label() -> str:
    return datetime.now().strftime("%H:%M")


class ConsolePresenter:
    """Terminal rendering used by ``floatchat run``."""

    def __init__(self) -> None:
        self.thinking = False
        self.status_lines: list[str] = []
        self.listening = False
        self.draft = ""

    def append_user_message(self, text: str) -> None:
        typer.echo(f"[{time_label()}] you: {text}")

    def append_bot_message(self, text: str) -> None:
        typer.echo(f"[{time_label()}] bot: {text}")

    def append_history_message(self, text: str, is_user: bool, time: str) -> None:
        who = "you" if is_user else "bot"
        typer.echo(f"[{time}] {who}: {text}")

    def clear_messages(self) -> None:
        typer.clear()

    def show_thinking(self) -> None:
        self.thinking = True
        typer.echo("  ...")

    def hide_thinking(self) -> None:
        self.thinking = False

    def append_status_line(self, text: str) -> None:
        self.status_lines.append(text)
        typer.echo(f"  - {text}")

    def clear_status_lines(self) -> None:
        self.status_lines.clear()

    def set_voice_indicator(self, listening: bool) -> None:
        if listening != self.listening:
            self.listening = listening
            typer.echo("[mic on]" if listening else "[mic off]")

    def set_voice_status_text(self, text: str, visible: bool) -> None:
        if visible and text:
            typer.echo(f"[voice] {text}")

    def set_input_text(self, text: str) -> None:
        self.draft = text
        if text:
            typer.echo(f"[draft] {text}  (press Enter to send)")
