"""Console helpers shared by the CLI commands."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel

console = Console()
err_console = Console(stderr=True)


def print_error_message(message: str, suggestion: str | None = None) -> None:
    """Print an error panel with an optional hint below the message."""
    body = f"[bold red]{message}[/bold red]"
    if suggestion:
        body += f"\n\n💡 {suggestion}"
    err_console.print(Panel(body, title="Error", border_style="red"))


def print_output_panel(
    text: str,
    title: str = "Output",
    subtitle: str | None = None,
    style: str = "green",
) -> None:
    """Print the assembled response inside a panel."""
    console.print(Panel(text, title=title, subtitle=subtitle, border_style=style))


def print_command_line_args(args: dict[str, Any]) -> None:
    """Print the resolved command line arguments, hiding secrets."""
    console.print("[bold]Command line arguments:[/bold]")
    for key, value in args.items():
        if key == "ctx":
            continue
        shown = "***" if value and ("key" in key or "token" in key) else value
        console.print(f"  [cyan]{key}[/cyan] = {shown}")
