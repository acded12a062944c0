"""Pydantic models for the host config YAML consumed by ``mcphost``."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from mcphost import __version__
from mcphost.protocols.mcp.bridge import sanitize
from mcphost.protocols.mcp.client import DEFAULT_EVENT_BUFFER
from mcphost.protocols.mcp.transport import DEFAULT_REQUEST_TIMEOUT


class TelemetrySettings(BaseModel):
    """Optional telemetry configuration."""

    enabled: bool = False
    otlp_endpoint: str | None = None


class MCPServerConfig(BaseModel):
    """One MCP server the host connects to.

    Example YAML::

        name: home-assistant
        transport: stdio
        command: ha-mcp
        args: [--verbose]
        env:
          HA_TOKEN: ${HA_TOKEN}
        exclude: [restart_server]
    """

    name: str = Field(min_length=1)
    transport: Literal["stdio", "http"] = "stdio"
    command: str | None = None
    args: list[str] = []
    env: dict[str, str] = {}
    url: str | None = None
    headers: dict[str, str] = {}
    include: list[str] = []
    exclude: list[str] = []
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)

    @model_validator(mode="after")
    def _validate_transport(self) -> MCPServerConfig:
        if self.transport == "stdio" and not self.command:
            msg = f"server '{self.name}': stdio transport requires 'command'"
            raise ValueError(msg)
        if self.transport == "http" and not self.url:
            msg = f"server '{self.name}': http transport requires 'url'"
            raise ValueError(msg)
        return self


class HostConfig(BaseModel):
    """Top-level host configuration parsed from YAML."""

    client_name: str = "mcphost"
    client_version: str = __version__
    event_buffer: int = Field(default=DEFAULT_EVENT_BUFFER, gt=0)
    telemetry: TelemetrySettings | None = None
    mcp_servers: list[MCPServerConfig] = []

    @model_validator(mode="after")
    def _unique_names(self) -> HostConfig:
        # Labels are namespaced in sanitized form, so compare them that way.
        seen: dict[str, str] = {}
        for server in self.mcp_servers:
            label = sanitize(server.name)
            if label in seen:
                msg = f"MCP server names '{seen[label]}' and '{server.name}' collide"
                raise ValueError(msg)
            seen[label] = server.name
        return self
