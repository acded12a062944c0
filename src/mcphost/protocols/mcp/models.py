"""MCP models — JSON-RPC 2.0 messages, the wire codec, and MCP payloads.

Implements the message format used by the Model Context Protocol for the
handshake (``initialize``), tool discovery (``tools/list``), tool execution
(``tools/call``) and server-pushed events.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_serializer,
    model_validator,
)

from mcphost.protocols.errors import DecodeError, RpcError

JSONRPC_VERSION = "2.0"

# MCP protocol revision advertised during ``initialize``.
PROTOCOL_VERSION = "2024-11-05"

# Method name of the notification a server uses to push a subscribed event.
EVENT_METHOD = "event"

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class _ParamsMessage(BaseModel):
    """Shared serializer: ``params`` is left off the wire when absent."""

    @model_serializer(mode="wrap")
    def _omit_absent_params(self, handler: Any) -> dict[str, Any]:
        data: dict[str, Any] = handler(self)
        if data.get("params") is None:
            data.pop("params", None)
        return data


class JsonRpcRequest(_ParamsMessage):
    """A JSON-RPC 2.0 request message."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: int | str
    method: str
    params: Any = None


class JsonRpcNotification(_ParamsMessage):
    """A JSON-RPC 2.0 notification: no ID, no response."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str
    params: Any = None


class JsonRpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None

    def to_exception(self) -> RpcError:
        return RpcError(self.code, self.message, self.data)


class JsonRpcResponse(BaseModel):
    """A JSON-RPC 2.0 response message.

    Exactly one of ``result`` or ``error`` is present in a well-formed
    response.
    """

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: int | str | None
    result: Any = None
    error: JsonRpcError | None = None

    @model_validator(mode="after")
    def _check_outcome(self) -> JsonRpcResponse:
        has_result = "result" in self.model_fields_set
        has_error = self.error is not None
        if has_result == has_error:
            msg = "response must carry exactly one of 'result' or 'error'"
            raise ValueError(msg)
        return self


JsonRpcMessage = JsonRpcRequest | JsonRpcResponse | JsonRpcNotification


def new_request(request_id: int, method: str, params: Any = None) -> JsonRpcRequest:
    """Create a JSON-RPC 2.0 request."""
    return JsonRpcRequest(id=request_id, method=method, params=params)


def new_notification(method: str, params: Any = None) -> JsonRpcNotification:
    """Create a JSON-RPC 2.0 notification."""
    return JsonRpcNotification(method=method, params=params)


def encode(message: JsonRpcMessage) -> bytes:
    """Serialize a message to compact JSON bytes (no trailing newline)."""
    return message.model_dump_json().encode("utf-8")


def decode(raw: bytes | str) -> JsonRpcMessage:
    """Parse one JSON-RPC 2.0 message.

    The shape decides the type: ``method`` + ``id`` is a request, ``method``
    alone is a notification, ``id`` alone is a response.

    Raises:
        DecodeError: If *raw* is not valid JSON or not a JSON-RPC 2.0 message.
    """
    try:
        data = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise DecodeError(f"invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise DecodeError("JSON-RPC message must be an object")

    model: type[JsonRpcRequest] | type[JsonRpcResponse] | type[JsonRpcNotification]
    if "method" in data:
        model = JsonRpcRequest if "id" in data else JsonRpcNotification
    elif "id" in data:
        model = JsonRpcResponse
    else:
        raise DecodeError("message has neither 'method' nor 'id'")

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise DecodeError(f"malformed {model.__name__}: {exc}") from exc


# ---------------------------------------------------------------------------
# MCP-specific payloads
# ---------------------------------------------------------------------------


class ToolDefinition(BaseModel):
    """A tool definition as returned by ``tools/list``.

    The input schema is opaque to the client and forwarded verbatim.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict, alias="inputSchema")


class ContentBlock(BaseModel):
    """One element of a ``tools/call`` result (text, image, resource, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str
    text: str = ""

    def render(self) -> str:
        """Text blocks yield their text; anything else a ``[type]`` marker."""
        if self.type == "text":
            return self.text
        return f"[{self.type}]"


class CallResult(BaseModel):
    """The result payload of a ``tools/call`` response."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[ContentBlock] = []
    is_error: bool = Field(default=False, alias="isError")

    def text(self) -> str:
        """Flatten all content blocks into one newline-joined string."""
        return "\n".join(block.render() for block in self.content)


class ServerInfo(BaseModel):
    name: str = ""
    version: str = ""


class InitializeResult(BaseModel):
    """The result payload of an ``initialize`` response."""

    model_config = ConfigDict(populate_by_name=True)

    protocol_version: str = Field(default="", alias="protocolVersion")
    server_info: ServerInfo = Field(default_factory=ServerInfo, alias="serverInfo")
    capabilities: dict[str, Any] = {}


class ToolsListResult(BaseModel):
    tools: list[ToolDefinition] = []


class Event(BaseModel):
    """A server-pushed event for a subscribed event type."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(validation_alias=AliasChoices("type", "event_type"))
    data: Any = None
    origin: str = ""
    time_fired: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
