"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from gigalink.llm.errors import ApiError
from gigalink.llm.response import GigaChatResponse
from gigalink.llm.types import ToolCall


class OutputFormatter:
    """Rich-based output formatting for the gigalink CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_completion(self, response: GigaChatResponse) -> None:
        for choice in response.completions:
            content = (choice.get("message") or {}).get("content")
            if content:
                self.console.print(content, markup=False, highlight=False)

    def format_tool_calls(self, tool_calls: list[dict]) -> None:
        if not tool_calls:
            return

        table = Table(title="Tool Calls", show_lines=True)
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name", style="bold")
        table.add_column("Arguments")

        for call in map(ToolCall.from_dict, tool_calls):
            table.add_row(call.id or "-", call.name or "?", call.arguments)

        self.console.print(table)

    def format_usage(self, response: GigaChatResponse) -> None:
        self.console.print(
            f"[dim]model={response.model} "
            f"prompt={response.prompt_tokens} "
            f"completion={response.completion_tokens} "
            f"total={response.total_tokens}[/dim]"
        )

    def format_embedding(self, response: GigaChatResponse, preview: int = 8) -> None:
        vector = response.embedding or []
        head = ", ".join(f"{v:.6f}" for v in vector[:preview])
        more = ", ..." if len(vector) > preview else ""
        self.console.print(f"[bold]{len(vector)}[/bold] dimensions: [{head}{more}]")

    def format_config(self, config: dict) -> None:
        json_str = json.dumps(config, indent=2, default=str)
        self.console.print(Syntax(json_str, "json", theme="monokai"))

    def format_error(self, error: Exception) -> None:
        if isinstance(error, ApiError):
            self.console.print(f"[red]API error {error.status}:[/red] {error.message}")
        else:
            self.console.print(f"[red]Error:[/red] {error}")
