"""MCP protocol — Model Context Protocol client."""

from mcphost.protocols.mcp.bridge import bridge_tools, sanitize, tool_name
from mcphost.protocols.mcp.client import ConnectionState, MCPClient, create_transport
from mcphost.protocols.mcp.models import (
    CallResult,
    ContentBlock,
    Event,
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    ToolDefinition,
    decode,
    encode,
    new_notification,
    new_request,
)
from mcphost.protocols.mcp.transport import HTTPTransport, MCPTransport, StdioTransport

__all__ = [
    "CallResult",
    "ConnectionState",
    "ContentBlock",
    "Event",
    "HTTPTransport",
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "MCPClient",
    "MCPTransport",
    "StdioTransport",
    "ToolDefinition",
    "bridge_tools",
    "create_transport",
    "decode",
    "encode",
    "new_notification",
    "new_request",
    "sanitize",
    "tool_name",
]
