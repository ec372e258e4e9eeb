from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer

from floatchat.app import run_console
from floatchat.config.settings import WidgetSettings, get_settings
from floatchat.core.errors import ChatTransportError
from floatchat.services.api import WidgetAPI


cli = typer.Typer(name="floatchat", help="Floating chat widget client")


def _settings(base_url: Optional[str]) -> WidgetSettings:
    settings = get_settings()
    if base_url:
        settings = settings.model_copy(update={"base_url": base_url})
    return settings


@cli.command()
def run(base_url: Optional[str] = typer.Option(None, "--base-url", help="Backend URL")) -> None:
    """Start the interactive console widget."""
    asyncio.run(run_console(_settings(base_url)))


@cli.command()
def send(
    message: str,
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Backend URL"),
) -> None:
    """Send one message and print the reply."""
    text = message.strip()
    if not text:
        typer.echo("Message is empty.", err=True)
        raise typer.Exit(code=2)
    settings = _settings(base_url)

    async def _send() -> str:
        api = WidgetAPI(settings)
        try:
            reply = await api.send_chat(text)
        finally:
            await api.close()
        return reply.reply or settings.empty_reply

    try:
        typer.echo(asyncio.run(_send()))
    except ChatTransportError:
        typer.echo(settings.fallback_reply)
        raise typer.Exit(code=1)


@cli.command()
def history(base_url: Optional[str] = typer.Option(None, "--base-url", help="Backend URL")) -> None:
    """Print the server-side conversation history."""
    settings = _settings(base_url)

    async def _fetch():
        api = WidgetAPI(settings)
        try:
            return await api.fetch_history()
        finally:
            await api.close()

    try:
        messages = asyncio.run(_fetch())
    except ChatTransportError:
        typer.echo(settings.fallback_reply)
        raise typer.Exit(code=1)
    for item in messages:
        who = "you" if item.is_user else "bot"
        typer.echo(f"[{item.time}] {who}: {item.text}")


@cli.command()
def config() -> None:
    """Print the effective settings as JSON."""
    typer.echo(json.dumps(get_settings().model_dump(), ensure_ascii=False, indent=2))


if __name__ == "__main__":  # pragma: no cover
    cli()
