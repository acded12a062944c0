"""Tests for ``mcphost tools`` CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock, patch

from click.testing import CliRunner

from mcphost.cli import main
from mcphost.protocols.errors import ToolExecutionError
from mcphost.protocols.mcp.models import ToolDefinition
from mcphost.protocols.registry import RegistryEntry, ToolRegistry

if TYPE_CHECKING:
    from pathlib import Path

_CONFIG = "mcp_servers:\n  - name: ha\n    command: ha-mcp\n"


def _write_config(tmp_path: Path, content: str = _CONFIG) -> str:
    f = tmp_path / "mcp.yaml"
    f.write_text(content)
    return str(f)


def _mock_host(entries: list[RegistryEntry] | None = None) -> MagicMock:
    registry = ToolRegistry()
    for entry in entries or []:
        registry.register(entry)
    host = MagicMock()
    host.__aenter__ = AsyncMock(return_value=host)
    host.__aexit__ = AsyncMock(return_value=False)
    host.registry = registry
    host.invoke = AsyncMock(return_value="light.kitchen is on")
    return host


def _entry(name: str = "mcp_ha_get_state") -> RegistryEntry:
    return RegistryEntry(
        name=name,
        description="Get the state of an entity",
        input_schema={"type": "object"},
        provider=MagicMock(),
        original_name="get_state",
        server="ha",
    )


class TestToolsDiscover:
    def test_discover_tools(self) -> None:
        with patch("mcphost.protocols.mcp.client.MCPClient") as mock_client_cls:
            mock_instance = mock_client_cls.from_config.return_value
            mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
            mock_instance.__aexit__ = AsyncMock(return_value=False)
            mock_instance.list_tools = AsyncMock(
                return_value=[ToolDefinition(name="read_file", description="Read a file")]
            )

            runner = CliRunner()
            result = runner.invoke(main, ["tools", "discover", "npx @mcp/fs"])

            assert result.exit_code == 0
            assert "read_file" in result.output
            config = mock_client_cls.from_config.call_args.args[0]
            assert config.transport == "stdio"
            assert config.command == "npx @mcp/fs"

    def test_discover_http(self) -> None:
        with patch("mcphost.protocols.mcp.client.MCPClient") as mock_client_cls:
            mock_instance = mock_client_cls.from_config.return_value
            mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
            mock_instance.__aexit__ = AsyncMock(return_value=False)
            mock_instance.list_tools = AsyncMock(return_value=[ToolDefinition(name="search")])

            runner = CliRunner()
            result = runner.invoke(
                main, ["tools", "discover", "http://localhost:9000/mcp", "--transport", "http"]
            )

            assert result.exit_code == 0
            config = mock_client_cls.from_config.call_args.args[0]
            assert config.url == "http://localhost:9000/mcp"

    def test_discover_no_tools(self) -> None:
        with patch("mcphost.protocols.mcp.client.MCPClient") as mock_client_cls:
            mock_instance = mock_client_cls.from_config.return_value
            mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
            mock_instance.__aexit__ = AsyncMock(return_value=False)
            mock_instance.list_tools = AsyncMock(return_value=[])

            runner = CliRunner()
            result = runner.invoke(main, ["tools", "discover", "npx @mcp/fs"])

            assert result.exit_code == 0
            assert "No tools discovered" in result.output

    def test_discover_error(self) -> None:
        with patch("mcphost.protocols.mcp.client.MCPClient") as mock_client_cls:
            mock_instance = mock_client_cls.from_config.return_value
            mock_instance.__aenter__ = AsyncMock(side_effect=RuntimeError("fail"))
            mock_instance.__aexit__ = AsyncMock(return_value=False)

            runner = CliRunner()
            result = runner.invoke(main, ["tools", "discover", "bad-server"])

            assert result.exit_code == 0
            assert "Discovery error" in result.output


class TestToolsList:
    def test_list_table(self, tmp_path: Path) -> None:
        host = _mock_host([_entry()])
        with patch("mcphost.sdk.host.MCPHost.from_yaml", return_value=host):
            runner = CliRunner()
            result = runner.invoke(main, ["tools", "list", _write_config(tmp_path)])

        assert result.exit_code == 0
        assert "mcp_ha_get_state" in result.output
        assert "get_state" in result.output

    def test_list_json(self, tmp_path: Path) -> None:
        host = _mock_host([_entry()])
        with patch("mcphost.sdk.host.MCPHost.from_yaml", return_value=host):
            runner = CliRunner()
            result = runner.invoke(
                main, ["tools", "list", _write_config(tmp_path), "--format", "json"]
            )

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data[0]["function"]["name"] == "mcp_ha_get_state"

    def test_list_empty(self, tmp_path: Path) -> None:
        with patch("mcphost.sdk.host.MCPHost.from_yaml", return_value=_mock_host()):
            runner = CliRunner()
            result = runner.invoke(main, ["tools", "list", _write_config(tmp_path)])

        assert result.exit_code == 0
        assert "No tools bridged" in result.output

    def test_invalid_config_exits_1(self, tmp_path: Path) -> None:
        path = _write_config(tmp_path, "mcp_servers:\n  - name: ha\n    transport: http\n")
        runner = CliRunner()
        result = runner.invoke(main, ["tools", "list", path])

        assert result.exit_code == 1
        assert "Config error" in result.output

    def test_missing_config_exits_1(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["tools", "list", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Cannot read" in result.output


class TestToolsCall:
    def test_call(self, tmp_path: Path) -> None:
        host = _mock_host([_entry()])
        with patch("mcphost.sdk.host.MCPHost.from_yaml", return_value=host):
            runner = CliRunner()
            result = runner.invoke(
                main,
                [
                    "tools",
                    "call",
                    _write_config(tmp_path),
                    "mcp_ha_get_state",
                    "--args",
                    '{"entity_id": "light.kitchen"}',
                ],
            )

        assert result.exit_code == 0
        assert "light.kitchen is on" in result.output
        host.invoke.assert_awaited_once_with("mcp_ha_get_state", {"entity_id": "light.kitchen"})

    def test_call_tool_error(self, tmp_path: Path) -> None:
        host = _mock_host([_entry()])
        host.invoke = AsyncMock(side_effect=ToolExecutionError("get_state", "entity not found"))
        with patch("mcphost.sdk.host.MCPHost.from_yaml", return_value=host):
            runner = CliRunner()
            result = runner.invoke(
                main, ["tools", "call", _write_config(tmp_path), "mcp_ha_get_state"]
            )

        assert result.exit_code == 0
        assert "Tool error" in result.output
        assert "entity not found" in result.output

    def test_call_bad_args(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main, ["tools", "call", _write_config(tmp_path), "mcp_ha_get_state", "--args", "[1]"]
        )

        assert result.exit_code == 2
        assert "JSON object" in result.output
