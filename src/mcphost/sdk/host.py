"""Config loading and the multi-server host for the mcphost SDK."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from mcphost.protocols.errors import ProtocolError
from mcphost.protocols.mcp.bridge import bridge_tools
from mcphost.protocols.mcp.client import MCPClient
from mcphost.protocols.registry import ToolRegistry
from mcphost.sdk.errors import ConfigValidationError
from mcphost.sdk.models import HostConfig, MCPServerConfig
from mcphost.utils.telemetry import configure_telemetry

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Load and validate a host config YAML file into a :class:`HostConfig`."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> HostConfig:
        """Read YAML, interpolate env vars, and validate.

        Environment variables in the form ``${VAR}`` or ``$VAR`` are expanded
        using :func:`os.path.expandvars` before YAML parsing, so bearer tokens
        and the like can stay out of the file.

        Raises:
            ConfigValidationError: On read errors, YAML parse errors or schema
                validation failures.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigValidationError(f"Cannot read {self._path}: {exc}") from exc

        expanded = os.path.expandvars(raw)

        try:
            data: Any = yaml.safe_load(expanded)
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error: {exc}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigValidationError("Host config YAML must be a mapping")

        try:
            return HostConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigValidationError(str(exc)) from exc


class MCPHost:
    """Owns one :class:`MCPClient` per configured server and a shared registry.

    Usage::

        async with MCPHost.from_yaml("mcp.yaml") as host:
            print(host.registry.names())
            text = await host.invoke("mcp_home_assistant_get_state", {"entity_id": "sun.sun"})

    A server that fails to start is logged and left out of the registry; the
    other servers keep working.  Reconnection is driven from outside through
    :meth:`reconnect`, typically when a health check says the server is back.
    """

    def __init__(self, config: HostConfig, *, registry: ToolRegistry | None = None) -> None:
        self.config = config
        self._registry = registry or ToolRegistry()
        self._clients: dict[str, MCPClient] = {}
        self._servers: dict[str, MCPServerConfig] = {s.name: s for s in config.mcp_servers}

    @classmethod
    def from_yaml(cls, path: str | Path) -> MCPHost:
        """Load a host config YAML and return an (unstarted) host."""
        return cls(ConfigLoader(Path(path)).load())

    async def __aenter__(self) -> MCPHost:
        await self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def clients(self) -> dict[str, MCPClient]:
        return dict(self._clients)

    def client(self, server: str) -> MCPClient:
        try:
            return self._clients[server]
        except KeyError:
            msg = f"unknown MCP server: {server}"
            raise KeyError(msg) from None

    async def start(self) -> dict[str, int]:
        """Initialize every configured server and bridge its tools.

        Returns the number of tools bridged per server that started.
        """
        telemetry = self.config.telemetry
        if telemetry is not None and telemetry.enabled:
            configure_telemetry(
                service_name=self.config.client_name,
                otlp_endpoint=telemetry.otlp_endpoint,
            )

        for server in self.config.mcp_servers:
            self._clients[server.name] = self._create_client(server)

        results = await asyncio.gather(
            *(self._start_server(server) for server in self.config.mcp_servers)
        )
        return {
            server.name: count
            for server, count in zip(self.config.mcp_servers, results)
            if count is not None
        }

    async def reconnect(self, server: str) -> int:
        """Reconnect one server and re-bridge its tools.  Returns the tool count."""
        client = self.client(server)
        await client.reconnect()
        self._registry.remove_server(server)
        return await self._bridge(client, self._servers[server])

    async def invoke(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        """Invoke a namespaced tool through the registry."""
        return await self._registry.invoke(name, arguments)

    async def ping_all(self) -> dict[str, ProtocolError | None]:
        """Ping every server; ``None`` means healthy, otherwise the failure."""
        names = list(self._clients)
        outcomes = await asyncio.gather(
            *(self._ping(self._clients[name]) for name in names)
        )
        return dict(zip(names, outcomes))

    async def close(self) -> None:
        """Close every client.  Registry entries stay but stop working."""
        await asyncio.gather(*(client.close() for client in self._clients.values()))

    def _create_client(self, server: MCPServerConfig) -> MCPClient:
        return MCPClient.from_config(
            server,
            client_name=self.config.client_name,
            client_version=self.config.client_version,
            event_buffer=self.config.event_buffer,
        )

    async def _start_server(self, server: MCPServerConfig) -> int | None:
        client = self._clients[server.name]
        try:
            await client.initialize()
            return await self._bridge(client, server)
        except ProtocolError as exc:
            logger.error("MCP server %s failed to start: %s", server.name, exc)
            return None

    async def _bridge(self, client: MCPClient, server: MCPServerConfig) -> int:
        count = await bridge_tools(
            client,
            server.name,
            self._registry,
            include=server.include,
            exclude=server.exclude,
        )
        logger.info("Bridged %d tools from MCP server %s", count, server.name)
        return count

    @staticmethod
    async def _ping(client: MCPClient) -> ProtocolError | None:
        try:
            await client.ping()
        except ProtocolError as exc:
            return exc
        return None
