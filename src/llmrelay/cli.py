from __future__ import annotations
import asyncio
import json
from pathlib import Path
from typing import Optional
import typer

from .bootstrap import build_app
from .streaming.events import ContentFragment, Finish, StreamError, ToolCallFragment

app = typer.Typer(add_completion=False)

DEFAULT_CONFIG = Path("config/default.yaml")


def _messages(text: str, system: Optional[str]) -> list:
    msgs = []
    if system:
        msgs.append({"role": "system", "content": system})
    msgs.append({"role": "user", "content": text})
    return msgs


@app.command()
def send(
    text: str,
    config: Path = DEFAULT_CONFIG,
    system: Optional[str] = None,
    model: Optional[str] = None,
):
    """Single-shot completion; prints the reply (and any error metadata)."""
    client = build_app(config)["client"]
    reply = asyncio.run(client.send(_messages(text, system), None, model))
    typer.echo(reply["content"])
    if reply.get("tool_calls"):
        typer.echo(json.dumps(reply["tool_calls"], indent=2, ensure_ascii=False))
    if reply.get("_error_metadata"):
        typer.echo(f"[error] {json.dumps(reply['_error_metadata'], ensure_ascii=False)}", err=True)


@app.command()
def stream(
    text: str,
    config: Path = DEFAULT_CONFIG,
    system: Optional[str] = None,
    model: Optional[str] = None,
):
    """Streamed completion; prints content as it arrives."""
    client = build_app(config)["client"]

    async def _run() -> None:
        events = await client.stream(_messages(text, system), None, model)
        async for event in events:
            if isinstance(event, ContentFragment):
                typer.echo(event.text, nl=False)
            elif isinstance(event, ToolCallFragment):
                continue
            elif isinstance(event, Finish):
                typer.echo("")
                if event.final_tool_calls:
                    typer.echo(json.dumps(event.final_tool_calls, indent=2, ensure_ascii=False))
                if event.error_metadata:
                    typer.echo(f"[error] {json.dumps(event.error_metadata, ensure_ascii=False)}", err=True)
            elif isinstance(event, StreamError):
                typer.echo(f"\n[stream error] {event.message}: {event.details}", err=True)

    asyncio.run(_run())


@app.command()
def stt(audio: Path, config: Path = DEFAULT_CONFIG):
    """Transcribe an audio file."""
    client = build_app(config)["client"]
    result = asyncio.run(client.stt(str(audio)))
    typer.echo(result["text"])
    if result.get("error_details"):
        typer.echo(f"[error] {json.dumps(result['error_details'], ensure_ascii=False)}", err=True)


@app.command()
def serve(config: Path = DEFAULT_CONFIG, host: str = "127.0.0.1", port: int = 8000):
    """Run the HTTP API."""
    from .web.app import run

    run(config=config, host=host, port=port)


if __name__ == "__main__":
    app()
