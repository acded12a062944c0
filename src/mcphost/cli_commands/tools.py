"""``mcphost tools`` — discover, list, and call MCP tools."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import TYPE_CHECKING, Any

import click
from rich.markup import escape

from mcphost.cli_commands._output import (
    console,
    print_definitions_table,
    print_registry_table,
)

if TYPE_CHECKING:
    from mcphost.protocols.mcp.models import ToolDefinition
    from mcphost.protocols.registry import RegistryEntry
    from mcphost.sdk.host import MCPHost


@click.group()
def tools() -> None:
    """Discover and invoke tools."""


@tools.command("discover")
@click.argument("server")
@click.option(
    "--transport",
    type=click.Choice(["stdio", "http"]),
    default="stdio",
    help="MCP server transport type.",
)
@click.option("--name", default="cli-discover", help="Label for the server.")
def discover(server: str, transport: str, name: str) -> None:
    """Discover tools from a single MCP server.

    SERVER is the command (for stdio) or URL (for http) of the MCP server.
    """
    from mcphost.protocols.mcp.client import MCPClient
    from mcphost.sdk.models import MCPServerConfig

    if transport == "stdio":
        config = MCPServerConfig(name=name, transport="stdio", command=server)
    else:
        config = MCPServerConfig(name=name, transport="http", url=server)

    async def _discover() -> list[ToolDefinition]:
        async with MCPClient.from_config(config) as client:
            return await client.list_tools()

    try:
        definitions = asyncio.run(_discover())
    except Exception as exc:
        console.print(f"[red]Discovery error:[/red] {escape(str(exc))}")
        return

    if not definitions:
        console.print("[yellow]No tools discovered.[/yellow]")
        return

    print_definitions_table(definitions, title=f"Tools on {name}")


@tools.command("list")
@click.argument("config", type=click.Path(exists=False))
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
def list_tools(config: str, fmt: str) -> None:
    """List the namespaced tools of every server in CONFIG."""
    host = load_host(config)

    async def _list() -> list[RegistryEntry]:
        async with host:
            return host.registry.entries()

    try:
        entries = asyncio.run(_list())
    except Exception as exc:
        console.print(f"[red]Host error:[/red] {escape(str(exc))}")
        return

    if not entries:
        console.print("[yellow]No tools bridged.[/yellow]")
        return

    if fmt == "json":
        console.print_json(json.dumps([e.function_schema() for e in entries]))
    else:
        print_registry_table(entries)


@tools.command("call")
@click.argument("config", type=click.Path(exists=False))
@click.argument("name")
@click.option("--args", "raw_args", default="{}", help="Tool arguments as a JSON object.")
def call(config: str, name: str, raw_args: str) -> None:
    """Invoke the namespaced tool NAME from a server in CONFIG."""
    arguments = _parse_arguments(raw_args)
    host = load_host(config)

    async def _call() -> str:
        async with host:
            return await host.invoke(name, arguments)

    try:
        result = asyncio.run(_call())
    except Exception as exc:
        console.print(f"[red]Tool error:[/red] {escape(str(exc))}")
        return

    console.print(result, markup=False, highlight=False)


def load_host(config: str) -> MCPHost:
    """Load *config* into an unstarted host; exit 1 if it is invalid."""
    from mcphost.sdk.errors import ConfigValidationError
    from mcphost.sdk.host import MCPHost

    try:
        return MCPHost.from_yaml(config)
    except ConfigValidationError as exc:
        console.print(f"[red]Config error:[/red] {escape(str(exc))}")
        sys.exit(1)


def _parse_arguments(raw: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--args") from exc
    if not isinstance(data, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--args")
    return data
