"""``mcphost servers`` — health checks and event streams."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import click
from rich.markup import escape

from mcphost.cli_commands._output import console, print_event, print_health_table
from mcphost.cli_commands.tools import load_host

if TYPE_CHECKING:
    from mcphost.protocols.errors import ProtocolError


@click.group()
def servers() -> None:
    """Inspect configured MCP servers."""


@servers.command("ping")
@click.argument("config", type=click.Path(exists=False))
def ping(config: str) -> None:
    """Ping every server in CONFIG and report which are healthy."""
    host = load_host(config)

    async def _ping() -> dict[str, ProtocolError | None]:
        async with host:
            return await host.ping_all()

    try:
        outcomes = asyncio.run(_ping())
    except Exception as exc:
        console.print(f"[red]Host error:[/red] {escape(str(exc))}")
        return

    if not outcomes:
        console.print("[yellow]No servers configured.[/yellow]")
        return

    print_health_table(outcomes)


@servers.command("watch")
@click.argument("config", type=click.Path(exists=False))
@click.argument("server")
@click.argument("event_types", nargs=-1, required=True)
@click.option("--count", type=int, default=0, help="Stop after N events (0 = run until interrupted).")
def watch(config: str, server: str, event_types: tuple[str, ...], count: int) -> None:
    """Subscribe SERVER to EVENT_TYPES and print events as they arrive."""
    host = load_host(config)

    async def _watch() -> None:
        async with host:
            client = host.client(server)
            for event_type in event_types:
                await client.subscribe(event_type)
            seen = 0
            while count == 0 or seen < count:
                print_event(await client.events.get())
                seen += 1

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        return
    except Exception as exc:
        console.print(f"[red]Watch error:[/red] {escape(str(exc))}")
