"""MCP host runtime — connect to MCP servers and expose their tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from mcphost.sdk.host import MCPHost as MCPHost
    from mcphost.sdk.models import HostConfig as HostConfig

_SDK_EXPORTS = {
    "MCPHost": "mcphost.sdk.host",
    "HostConfig": "mcphost.sdk.models",
}


def __getattr__(name: str) -> object:
    module_path = _SDK_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'mcphost' has no attribute {name!r}")
