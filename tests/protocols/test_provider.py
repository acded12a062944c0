"""Tests for the ToolProvider protocol."""

from typing import Any

from mcphost.protocols.mcp.models import ToolDefinition
from mcphost.protocols.provider import ToolProvider


class _DummyProvider:
    """Minimal class that satisfies ToolProvider."""

    async def list_tools(self) -> list[ToolDefinition]:
        return [ToolDefinition(name="noop")]

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        return "ok"


class TestToolProvider:
    def test_runtime_checkable(self) -> None:
        provider = _DummyProvider()
        assert isinstance(provider, ToolProvider)

    def test_non_provider_fails(self) -> None:
        assert not isinstance("not a provider", ToolProvider)

    def test_mcp_client_is_a_provider(self) -> None:
        from unittest.mock import MagicMock

        from mcphost.protocols.mcp.client import MCPClient

        client = MCPClient("ha", MagicMock())
        assert isinstance(client, ToolProvider)

    async def test_list_tools(self) -> None:
        tools = await _DummyProvider().list_tools()
        assert [t.name for t in tools] == ["noop"]

    async def test_call_tool(self) -> None:
        assert await _DummyProvider().call_tool("noop", {}) == "ok"
