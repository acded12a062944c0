"""ToolProvider protocol — what the registry needs from a tool source.

:class:`~mcphost.protocols.mcp.client.MCPClient` satisfies this protocol, so
the bridge and :class:`~mcphost.protocols.registry.ToolRegistry` can work
with any object that lists and calls tools, real client or test double.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mcphost.protocols.mcp.models import ToolDefinition


@runtime_checkable
class ToolProvider(Protocol):
    """Discovers and executes tools exposed by an external service."""

    async def list_tools(self) -> list[ToolDefinition]:
        """Return the provider's tool definitions, with their unqualified names."""
        ...

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        """Execute a tool by its unqualified name and return its text result."""
        ...
