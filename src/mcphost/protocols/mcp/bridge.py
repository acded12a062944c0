"""Bridge MCP tools into a :class:`~mcphost.protocols.registry.ToolRegistry`.

Tool names are namespaced as ``mcp_{server}_{tool}`` so that tools from
different servers, and the host's own tools, can never collide.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

from mcphost.protocols.registry import RegistryEntry

if TYPE_CHECKING:
    from mcphost.protocols.provider import ToolProvider
    from mcphost.protocols.registry import ToolRegistry

logger = logging.getLogger(__name__)

_INVALID_CHARS = re.compile(r"[^a-z0-9_]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def sanitize(name: str) -> str:
    """Lowercase *name* and reduce it to ``[a-z0-9_]``.

    Disallowed characters become underscores, runs of underscores collapse
    to one, and leading/trailing underscores are trimmed.
    """
    s = name.lower().replace("-", "_")
    s = _INVALID_CHARS.sub("_", s)
    s = _UNDERSCORE_RUNS.sub("_", s)
    return s.strip("_")


def tool_name(server: str, tool: str) -> str:
    """Namespaced host tool name for *tool* on *server*."""
    return f"mcp_{sanitize(server)}_{sanitize(tool)}"


async def bridge_tools(
    provider: ToolProvider,
    server: str,
    registry: ToolRegistry,
    include: Iterable[str] = (),
    exclude: Iterable[str] = (),
) -> int:
    """Discover tools from *provider* and register them on *registry*.

    - If *include* is non-empty, only tools named in it are bridged.
    - Tools named in *exclude* are skipped.
    - Names are matched against the unqualified MCP tool name.

    Returns the number of tools registered.
    """
    include_set = set(include)
    exclude_set = set(exclude)

    count = 0
    for definition in await provider.list_tools():
        if include_set and definition.name not in include_set:
            continue
        if exclude_set and definition.name in exclude_set:
            continue

        name = tool_name(server, definition.name)
        registry.register(
            RegistryEntry(
                name=name,
                description=definition.description,
                input_schema=definition.input_schema,
                provider=provider,
                original_name=definition.name,
                server=server,
            )
        )
        count += 1
        logger.debug("Bridged MCP tool %s from %s as %s", definition.name, server, name)

    return count
