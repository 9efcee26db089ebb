"""
Main CLI application for gigalink.

Usage:
    gigalink chat PROMPT [--system TEXT] [--model NAME] [--tools FILE] [--stream/--no-stream]
    gigalink complete PROMPT [--model NAME] [--temperature T]
    gigalink embed TEXT [--model NAME]
    gigalink summarize TEXT
    gigalink config show|validate
    gigalink version
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from gigalink import __version__
from gigalink.cli.output import OutputFormatter
from gigalink.config import GigalinkConfig, load_config
from gigalink.llm.errors import ApiError
from gigalink.llm.gigachat import GigaChat
from gigalink.llm.message import GigaChatMessage

app = typer.Typer(name="gigalink", help="GigaChat command-line client")
config_app = typer.Typer(help="Configuration management")

app.add_typer(config_app, name="config")

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_config_path() -> Path | None:
    """Find config file in standard locations."""
    candidates = [
        Path.cwd() / "gigalink.yaml",
        Path.cwd() / "gigalink.yml",
        Path.home() / ".config" / "gigalink" / "config.yaml",
    ]
    for p in candidates:
        if p.is_file():
            return p
    return None


def _setup_logging(cfg: GigalinkConfig) -> None:
    logging.basicConfig(
        level=cfg.logging.level.upper(),
        format=cfg.logging.format,
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _build_llm(profile: str | None = None) -> GigaChat:
    """Load config, configure logging, and build the adapter."""
    cfg = load_config(_get_config_path(), profile=profile)
    _setup_logging(cfg)
    return GigaChat.from_config(cfg)


def _print_delta(chunk: dict[str, Any]) -> None:
    for choice in chunk.get("choices") or []:
        content = (choice.get("delta") or {}).get("content")
        if content:
            console.print(content, end="", markup=False, highlight=False)


def _fail(error: Exception) -> None:
    OutputFormatter(console).format_error(error)
    raise typer.Exit(1)


def _load_tools(path: Path) -> list[dict]:
    """Read a JSON list of tool definitions, exiting with an error if unusable."""
    try:
        tools = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        _fail(ValueError(f"Cannot read tools from {path}: {e}"))
    if not isinstance(tools, list) or not all(isinstance(t, dict) for t in tools):
        _fail(ValueError(f"Tools file {path} must contain a JSON list of objects"))
    return tools


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def chat(
    prompt: str = typer.Argument(..., help="User message"),
    system: Optional[str] = typer.Option(None, help="System instructions"),
    model: Optional[str] = typer.Option(None, help="Model name"),
    tools_file: Optional[Path] = typer.Option(
        None, "--tools", help="JSON file with a list of tool definitions"
    ),
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Stream the reply"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
):
    """Send one chat turn, optionally with tools."""
    llm = _build_llm(profile)
    formatter = OutputFormatter(console)

    messages: list[GigaChatMessage] = []
    if system:
        messages.append(GigaChatMessage(role="system", content=system))
    messages.append(GigaChatMessage(role="user", content=prompt))

    tools = None
    if tools_file is not None:
        tools = _load_tools(tools_file)

    try:
        response = llm.chat(
            messages,
            model=model,
            tools=tools,
            on_chunk=_print_delta if stream else None,
        )
    except ApiError as e:
        _fail(e)

    if stream:
        console.print()
    else:
        formatter.format_completion(response)
    formatter.format_tool_calls(response.tool_calls)
    formatter.format_usage(response)


@app.command()
def complete(
    prompt: str = typer.Argument(..., help="Prompt text"),
    model: Optional[str] = typer.Option(None, help="Model name"),
    temperature: Optional[float] = typer.Option(None, help="Sampling temperature"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
):
    """Complete a single prompt."""
    llm = _build_llm(profile)
    formatter = OutputFormatter(console)
    try:
        response = llm.complete(prompt, model=model, temperature=temperature)
    except ApiError as e:
        _fail(e)
    formatter.format_completion(response)
    formatter.format_usage(response)


@app.command()
def embed(
    text: str = typer.Argument(..., help="Text to embed"),
    model: Optional[str] = typer.Option(None, help="Embedding model name"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
):
    """Print an embedding vector summary."""
    llm = _build_llm(profile)
    formatter = OutputFormatter(console)
    try:
        response = llm.embed(text, model=model)
    except ApiError as e:
        _fail(e)
    formatter.format_embedding(response)
    formatter.format_usage(response)


@app.command()
def summarize(
    text: str = typer.Argument(..., help="Text to summarize"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
):
    """Summarize a piece of text."""
    llm = _build_llm(profile)
    try:
        response = llm.summarize(text)
    except ApiError as e:
        _fail(e)
    OutputFormatter(console).format_completion(response)


@config_app.command("show")
def config_show(
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
):
    """Show effective config."""
    cfg = load_config(_get_config_path(), profile=profile)
    OutputFormatter(console).format_config(cfg.to_dict())


@config_app.command("validate")
def config_validate():
    """Validate config and show the effective GigaChat settings."""
    config_path = _get_config_path()
    try:
        cfg = load_config(config_path)
    except Exception as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)

    console.print("[green]Config is valid.[/green]")
    if config_path:
        console.print(f"  Loaded from: {config_path}")
    else:
        console.print("  [dim]No config file found, using defaults.[/dim]")
    console.print(f"  Endpoint: {cfg.gigachat.base_url}")
    console.print(f"  Chat model: {cfg.gigachat.chat_model}")
    console.print(f"  Credentials env: {cfg.gigachat.credentials_env}")


@app.command()
def version():
    """Show version."""
    console.print(f"gigalink v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
