"""Tests for the protocol error hierarchy."""

import pytest

from mcphost.protocols.errors import (
    ConnectionError,
    DecodeError,
    NotReadyError,
    ProtocolError,
    RequestTimeoutError,
    RpcError,
    ToolExecutionError,
    ToolNotFoundError,
    TransportClosedError,
    TransportError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            TransportError("x"),
            TransportClosedError("x"),
            ConnectionError("x"),
            DecodeError("x"),
            RequestTimeoutError("ping", 30.0),
            RpcError(-32600, "Invalid request"),
            NotReadyError("x"),
            ToolNotFoundError("x"),
            ToolExecutionError("x"),
        ],
    )
    def test_all_are_protocol_errors(self, error: ProtocolError) -> None:
        assert isinstance(error, ProtocolError)

    def test_transport_family(self) -> None:
        assert issubclass(TransportClosedError, TransportError)
        assert issubclass(ConnectionError, TransportError)

    def test_timeout_is_builtin_timeout(self) -> None:
        error = RequestTimeoutError("tools/list", 30.0)
        assert isinstance(error, TimeoutError)
        assert error.timeout == 30.0
        assert str(error) == "no response to tools/list after 30.0s"


class TestContext:
    def test_plain_message(self) -> None:
        assert str(DecodeError("invalid JSON")) == "invalid JSON"

    def test_context_prefixes_message(self) -> None:
        error = TransportClosedError("subprocess stdout closed").with_context(
            server="home-assistant", method="tools/call"
        )
        assert str(error) == "home-assistant: tools/call: subprocess stdout closed"

    def test_context_is_not_overwritten(self) -> None:
        error = RpcError(-32601, "Method not found").with_context(server="inner")
        error.with_context(server="outer", method="ping")
        assert error.server == "inner"
        assert error.method == "ping"

    def test_with_context_returns_self(self) -> None:
        error = NotReadyError("client is closed")
        assert error.with_context(server="ha") is error


class TestToolErrors:
    def test_not_found(self) -> None:
        error = ToolNotFoundError("mcp_ha_nope")
        assert error.name == "mcp_ha_nope"
        assert "mcp_ha_nope" in str(error)

    def test_execution_error_with_detail(self) -> None:
        error = ToolExecutionError("get_state", "entity not found")
        assert str(error) == "MCP tool get_state returned error: entity not found"

    def test_execution_error_without_detail(self) -> None:
        assert str(ToolExecutionError("get_state")) == "MCP tool get_state returned error"

    def test_rpc_error_fields(self) -> None:
        error = RpcError(-32602, "Invalid params", {"field": "entity_id"})
        assert (error.code, error.message, error.data) == (-32602, "Invalid params", {"field": "entity_id"})
