"""Shared error types for the protocol layer.

Every error raised by the transports, the client, and the registry derives
from :class:`ProtocolError`.  Errors optionally carry the server label and
JSON-RPC method they relate to; when present they prefix the message.
"""

from __future__ import annotations

from typing import Any


class ProtocolError(Exception):
    """Base error for all protocol-layer failures."""

    server: str | None = None
    method: str | None = None

    def with_context(
        self,
        *,
        server: str | None = None,
        method: str | None = None,
    ) -> ProtocolError:
        """Attach server/method context without overwriting what is already set."""
        if self.server is None:
            self.server = server
        if self.method is None:
            self.method = method
        return self

    def __str__(self) -> str:
        message = super().__str__()
        prefix = ": ".join(p for p in (self.server, self.method) if p)
        return f"{prefix}: {message}" if prefix else message


class TransportError(ProtocolError):
    """The underlying byte transport failed (I/O, HTTP status, process exit)."""


class TransportClosedError(TransportError):
    """The transport is not connected or was closed while a request was pending."""


class ConnectionError(TransportError):
    """Failed to connect to an external service."""


class DecodeError(ProtocolError):
    """A message could not be decoded as JSON-RPC 2.0."""


class RequestTimeoutError(ProtocolError, TimeoutError):
    """No response arrived before the per-request deadline."""

    def __init__(self, method: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"no response to {method} after {timeout}s")


class RpcError(ProtocolError):
    """A JSON-RPC error object reported by the server."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"jsonrpc error {code}: {message}")


class NotReadyError(ProtocolError):
    """The client has not completed the handshake, or has been closed."""


class ToolNotFoundError(ProtocolError):
    """Requested tool does not exist in the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool not found: {name}")


class ToolExecutionError(ProtocolError):
    """A tool reported failure through the ``isError`` flag of its result."""

    def __init__(self, name: str, detail: str = "") -> None:
        self.name = name
        self.detail = detail
        super().__init__(f"MCP tool {name} returned error" + (f": {detail}" if detail else ""))
