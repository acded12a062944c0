"""ToolRegistry — the host-visible catalog of namespaced tools.

Each entry keeps the metadata the host shows to a model (name, description,
input schema) and a handle on the provider that owns the tool.  Invoking an
entry proxies the call back to that provider under the tool's original,
unqualified name.  The registry never decodes protocol payloads.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mcphost.protocols.errors import ToolNotFoundError
from mcphost.utils.telemetry import (
    ATTR_MCP_SERVER,
    ATTR_TOOL_NAME,
    ATTR_TOOL_ORIGINAL_NAME,
    get_tracer,
)

if TYPE_CHECKING:
    from mcphost.protocols.provider import ToolProvider

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


@dataclass(frozen=True)
class RegistryEntry:
    """One bridged tool.

    ``provider`` is a non-owning handle: the registry never opens or closes
    it, and the provider outlives its entries.
    """

    name: str
    description: str
    input_schema: dict[str, Any]
    provider: ToolProvider = field(repr=False, compare=False)
    original_name: str
    server: str = ""

    async def invoke(self, arguments: dict[str, Any] | None = None) -> str:
        return await self.provider.call_tool(self.original_name, arguments or {})

    def function_schema(self) -> dict[str, Any]:
        """OpenAI-compatible function schema for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema or {"type": "object", "properties": {}},
            },
        }


class ToolRegistry:
    """Maintains a name-to-entry map and proxies invocations.

    Usage::

        registry = ToolRegistry()
        await bridge_tools(ha_client, "home-assistant", registry)

        tools = registry.all_tools()
        text = await registry.invoke("mcp_home_assistant_get_state", {"entity_id": "sun.sun"})
    """

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def register(self, entry: RegistryEntry) -> None:
        """Add *entry*; an existing entry with the same name is replaced."""
        if entry.name in self._entries:
            logger.warning("Tool %s is already registered, replacing it", entry.name)
        self._entries[entry.name] = entry

    def remove_server(self, server: str) -> int:
        """Drop every entry bridged from *server*.  Returns how many were removed."""
        stale = [name for name, entry in self._entries.items() if entry.server == server]
        for name in stale:
            del self._entries[name]
        return len(stale)

    def get(self, name: str) -> RegistryEntry:
        entry = self._entries.get(name)
        if entry is None:
            raise ToolNotFoundError(name)
        return entry

    def names(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> list[RegistryEntry]:
        return list(self._entries.values())

    def all_tools(self) -> list[dict[str, Any]]:
        """Return the merged list of all tool schemas across providers."""
        return [entry.function_schema() for entry in self._entries.values()]

    async def invoke(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        """Look up a namespaced tool and proxy the call to its provider."""
        entry = self.get(name)
        with _tracer.start_as_current_span("mcp.tool.invoke") as span:
            span.set_attribute(ATTR_TOOL_NAME, entry.name)
            span.set_attribute(ATTR_TOOL_ORIGINAL_NAME, entry.original_name)
            span.set_attribute(ATTR_MCP_SERVER, entry.server)
            return await entry.invoke(arguments)

    async def invoke_all(self, calls: list[tuple[str, dict[str, Any]]]) -> list[str]:
        """Invoke several tools concurrently; results keep the order of *calls*."""
        return list(await asyncio.gather(*[self.invoke(name, args) for name, args in calls]))
