"""mcphost CLI entrypoint."""

from __future__ import annotations

import logging

import click
from rich.logging import RichHandler

from mcphost import __version__
from mcphost.cli_commands._output import err_console


@click.group()
@click.version_option(version=__version__, prog_name="mcphost")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Log level for runtime diagnostics (written to stderr).",
)
def main(log_level: str) -> None:
    """mcphost — talk to MCP servers and their tools."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


# Register subcommands
from mcphost.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
