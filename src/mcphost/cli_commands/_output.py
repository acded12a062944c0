"""Shared CLI output formatters."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from mcphost.protocols.errors import ProtocolError
    from mcphost.protocols.mcp.models import Event, ToolDefinition
    from mcphost.protocols.registry import RegistryEntry

console = Console()
err_console = Console(stderr=True)


def print_definitions_table(definitions: list[ToolDefinition], *, title: str) -> None:
    """Pretty-print raw MCP tool definitions as a table."""
    table = Table(title=title)
    table.add_column("Name", style="cyan")
    table.add_column("Description")

    for definition in definitions:
        table.add_row(definition.name, escape(_truncate(definition.description)))

    console.print(table)


def print_registry_table(entries: list[RegistryEntry]) -> None:
    """Pretty-print bridged registry entries as a table."""
    table = Table(title="Bridged Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Server")
    table.add_column("MCP Tool")
    table.add_column("Description")

    for entry in entries:
        table.add_row(
            entry.name,
            entry.server,
            entry.original_name,
            escape(_truncate(entry.description)),
        )

    console.print(table)


def print_health_table(outcomes: dict[str, ProtocolError | None]) -> None:
    table = Table(title="MCP Servers")
    table.add_column("Server", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")

    for server, error in outcomes.items():
        if error is None:
            table.add_row(server, "[green]ok[/green]", "")
        else:
            table.add_row(server, "[red]down[/red]", escape(_truncate(str(error))))

    console.print(table)


def print_event(event: Event) -> None:
    console.print(
        f"[dim]{event.time_fired.isoformat()}[/dim] "
        f"[cyan]{escape(event.type)}[/cyan] ({escape(event.origin or '-')})"
    )
    if event.data is not None:
        console.print_json(data=event.data)


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
