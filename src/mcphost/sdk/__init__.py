"""mcphost SDK — programmatic interface for hosting several MCP servers."""

from mcphost.sdk.errors import ConfigValidationError
from mcphost.sdk.host import ConfigLoader, MCPHost
from mcphost.sdk.models import HostConfig, MCPServerConfig, TelemetrySettings

__all__ = [
    "ConfigLoader",
    "ConfigValidationError",
    "HostConfig",
    "MCPHost",
    "MCPServerConfig",
    "TelemetrySettings",
]
