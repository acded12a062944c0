"""Protocol layer — MCP client runtime and the host tool registry."""

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
from mcphost.protocols.provider import ToolProvider
from mcphost.protocols.registry import RegistryEntry, ToolRegistry

__all__ = [
    "ConnectionError",
    "DecodeError",
    "NotReadyError",
    "ProtocolError",
    "RegistryEntry",
    "RequestTimeoutError",
    "RpcError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolProvider",
    "ToolRegistry",
    "TransportClosedError",
    "TransportError",
]
