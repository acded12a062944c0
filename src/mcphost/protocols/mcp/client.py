"""MCPClient — one MCP server connection and its protocol state machine.

Implements the handshake (``initialize`` + ``notifications/initialized``),
tool discovery (``tools/list``) with caching, tool execution
(``tools/call``), liveness (``ping``), event subscriptions
(``subscribe_events``) and host-driven reconnection over an
:class:`MCPTransport`.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from mcphost import __version__
from mcphost.protocols.errors import (
    DecodeError,
    NotReadyError,
    ProtocolError,
    ToolExecutionError,
    TransportError,
)
from mcphost.protocols.mcp.models import (
    PROTOCOL_VERSION,
    CallResult,
    Event,
    InitializeResult,
    ToolDefinition,
    ToolsListResult,
    new_notification,
    new_request,
)
from mcphost.protocols.mcp.transport import HTTPTransport, MCPTransport, StdioTransport
from mcphost.utils.telemetry import ATTR_MCP_SERVER, ATTR_RPC_ID, ATTR_RPC_METHOD, get_tracer

if TYPE_CHECKING:
    from mcphost.sdk.models import MCPServerConfig

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

DEFAULT_EVENT_BUFFER = 100

_M = TypeVar("_M", bound=BaseModel)


class ConnectionState(str, Enum):
    """Lifecycle of an :class:`MCPClient` connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


def create_transport(config: MCPServerConfig) -> MCPTransport:
    """Build the appropriate transport from a server config."""
    if config.transport == "stdio":
        if not config.command:
            msg = "MCPServerConfig with stdio transport must specify 'command'"
            raise ValueError(msg)
        return StdioTransport(
            command=config.command,
            args=config.args,
            env=config.env,
            request_timeout=config.request_timeout,
        )
    if not config.url:
        msg = "MCPServerConfig with http transport must specify 'url'"
        raise ValueError(msg)
    return HTTPTransport(
        url=config.url,
        headers=config.headers,
        request_timeout=config.request_timeout,
    )


class MCPClient:
    """Async context manager that connects to one MCP server.

    Satisfies the :class:`~mcphost.protocols.provider.ToolProvider` protocol.

    Only a *ready* client (handshake complete) admits ``list_tools``,
    ``call_tool``, ``subscribe`` and ``ping``; anything else raises
    :class:`NotReadyError`.  A transport failure on the current connection
    drops the client back to *disconnected* and invalidates the tool cache;
    failures of requests sent before a reconnect only reach their callers.
    Nothing is retried internally; the host decides when to call
    :meth:`reconnect`.

    Usage::

        transport = StdioTransport("ha-mcp")
        async with MCPClient("home-assistant", transport) as client:
            tools = await client.list_tools()
            text = await client.call_tool("get_state", {"entity_id": "light.kitchen"})
    """

    def __init__(
        self,
        name: str,
        transport: MCPTransport,
        *,
        client_name: str = "mcphost",
        client_version: str = __version__,
        event_buffer: int = DEFAULT_EVENT_BUFFER,
    ) -> None:
        self._name = name
        self._transport = transport
        if event_buffer < 1:
            msg = "event_buffer must be at least 1"
            raise ValueError(msg)
        self._client_info = {"name": client_name, "version": client_version}
        self._ids = itertools.count(1)
        self._state = ConnectionState.DISCONNECTED
        self._server: InitializeResult | None = None
        self._tools: list[ToolDefinition] | None = None
        self._tools_fetch: asyncio.Future[list[ToolDefinition]] | None = None
        # Bumped whenever the connection is torn down; failures from an older
        # connection must not touch the current one.
        self._generation = 0
        # Insertion-ordered set of acknowledged event types.
        self._subscriptions: dict[str, None] = {}
        self._events: asyncio.Queue[Event] = asyncio.Queue(maxsize=event_buffer)
        self._dropped_events = 0
        transport.set_event_handler(self._on_event)

    @classmethod
    def from_config(cls, config: MCPServerConfig, **kwargs: Any) -> MCPClient:
        """Create a client (and its transport) from an :class:`MCPServerConfig`."""
        return cls(config.name, create_transport(config), **kwargs)

    async def __aenter__(self) -> MCPClient:
        await self.initialize()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    # -- read-only state ----------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is ConnectionState.READY

    @property
    def server_name(self) -> str:
        return self._server.server_info.name if self._server else ""

    @property
    def server_version(self) -> str:
        return self._server.server_info.version if self._server else ""

    @property
    def protocol_version(self) -> str:
        return self._server.protocol_version if self._server else ""

    @property
    def subscriptions(self) -> list[str]:
        return list(self._subscriptions)

    @property
    def events(self) -> asyncio.Queue[Event]:
        """Bounded queue of server-pushed events; the newest event is dropped when full."""
        return self._events

    @property
    def dropped_events(self) -> int:
        return self._dropped_events

    # -- protocol operations ------------------------------------------------

    async def initialize(self) -> None:
        """Connect the transport and perform the MCP handshake.

        The client becomes *ready* only after ``notifications/initialized``
        has been sent.  Any failure leaves it *disconnected*.
        """
        if self._state is ConnectionState.CLOSED:
            raise NotReadyError("client is closed").with_context(server=self._name)
        if self._state is ConnectionState.READY:
            return

        self._generation += 1
        self._state = ConnectionState.CONNECTING
        try:
            try:
                await self._transport.connect()
            except ProtocolError as exc:
                raise exc.with_context(server=self._name)

            self._state = ConnectionState.INITIALIZING
            raw = await self._request(
                "initialize",
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": self._client_info,
                },
            )
            self._server = self._parse(InitializeResult, raw, "initialize")

            try:
                await self._transport.notify(new_notification("notifications/initialized"))
            except ProtocolError as exc:
                raise exc.with_context(server=self._name, method="notifications/initialized")
        except BaseException:
            if self._state is not ConnectionState.CLOSED:
                self._state = ConnectionState.DISCONNECTED
            raise

        self._state = ConnectionState.READY
        logger.info(
            "MCP server %s initialized: %s %s (protocol %s)",
            self._name,
            self.server_name,
            self.server_version,
            self.protocol_version,
        )
        if self.protocol_version and self.protocol_version != PROTOCOL_VERSION:
            logger.warning(
                "MCP server %s advertises protocol %s, client speaks %s",
                self._name,
                self.protocol_version,
                PROTOCOL_VERSION,
            )

    async def list_tools(self) -> list[ToolDefinition]:
        """Return the server's tools, sending ``tools/list`` only on a cache miss.

        Concurrent callers on a cold cache share one in-flight request.
        """
        self._require_ready("tools/list")
        if self._tools is not None:
            return list(self._tools)

        fetch = self._tools_fetch
        if fetch is None:
            fetch = asyncio.ensure_future(self._fetch_tools())
            fetch.add_done_callback(self._tools_fetch_done)
            self._tools_fetch = fetch
        return list(await asyncio.shield(fetch))

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        """Invoke a tool and return its content flattened to one string.

        Raises:
            ToolExecutionError: If the server flags the result with ``isError``.
        """
        self._require_ready("tools/call")
        raw = await self._request("tools/call", {"name": name, "arguments": arguments or {}})
        result = self._parse(CallResult, raw, "tools/call")
        text = result.text()
        if result.is_error:
            raise ToolExecutionError(name, text).with_context(server=self._name, method="tools/call")
        return text

    async def ping(self) -> None:
        """Raise unless the server answers a ``ping`` request."""
        self._require_ready("ping")
        await self._request("ping")

    async def subscribe(self, event_type: str) -> None:
        """Ask the server to push *event_type* events; tracked for reconnects."""
        self._require_ready("subscribe_events")
        await self._request("subscribe_events", {"event_type": event_type})
        self._subscriptions[event_type] = None
        logger.info("Subscribed to %s events on MCP server %s", event_type, self._name)

    async def reconnect(self) -> None:
        """Close the connection, redo the handshake, and restore subscriptions."""
        if self._state is ConnectionState.CLOSED:
            raise NotReadyError("client is closed").with_context(server=self._name)

        logger.info("Reconnecting to MCP server %s", self._name)
        await self._transport.close()
        self._invalidate()
        await self.initialize()
        await self._restore_subscriptions()

    async def close(self) -> None:
        """Close the underlying transport.  The client cannot be reused."""
        if self._state is ConnectionState.CLOSED:
            return
        logger.info("Closing MCP client %s", self._name)
        self._state = ConnectionState.CLOSED
        self._generation += 1
        self._tools = None
        self._tools_fetch = None
        await self._transport.close()

    # -- internals ----------------------------------------------------------

    async def _request(self, method: str, params: Any = None) -> Any:
        """Send a JSON-RPC request and return its ``result`` payload."""
        request = new_request(next(self._ids), method, params)
        generation = self._generation
        with _tracer.start_as_current_span("mcp.request") as span:
            span.set_attribute(ATTR_MCP_SERVER, self._name)
            span.set_attribute(ATTR_RPC_METHOD, method)
            span.set_attribute(ATTR_RPC_ID, request.id)
            try:
                response = await self._transport.send(request)
            except TransportError as exc:
                if generation == self._generation:
                    self._connection_lost(exc)
                raise exc.with_context(server=self._name, method=method)
            except ProtocolError as exc:
                raise exc.with_context(server=self._name, method=method)

        if response.error is not None:
            raise response.error.to_exception().with_context(server=self._name, method=method)
        return response.result

    def _parse(self, model: type[_M], raw: Any, method: str) -> _M:
        try:
            return model.model_validate(raw or {})
        except ValidationError as exc:
            error = DecodeError(f"unexpected {method} result: {exc}")
            raise error.with_context(server=self._name, method=method) from exc

    def _require_ready(self, method: str) -> None:
        if self._state is not ConnectionState.READY:
            error = NotReadyError(f"client is {self._state.value}")
            raise error.with_context(server=self._name, method=method)

    def _connection_lost(self, exc: BaseException) -> None:
        if self._state is ConnectionState.CLOSED:
            return
        logger.warning("Lost connection to MCP server %s: %s", self._name, exc)
        self._invalidate()

    async def _fetch_tools(self) -> list[ToolDefinition]:
        generation = self._generation
        raw = await self._request("tools/list")
        result = self._parse(ToolsListResult, raw, "tools/list")
        if generation == self._generation:
            self._tools = result.tools
        logger.info("Discovered %d tools on MCP server %s", len(result.tools), self._name)
        return result.tools

    def _tools_fetch_done(self, fetch: asyncio.Future[list[ToolDefinition]]) -> None:
        if self._tools_fetch is fetch:
            self._tools_fetch = None
        # Waiters re-raise the failure through the shield; mark it retrieved
        # so a fetch whose waiters were all cancelled is not reported as lost.
        if not fetch.cancelled():
            fetch.exception()

    def _invalidate(self) -> None:
        self._generation += 1
        self._state = ConnectionState.DISCONNECTED
        self._server = None
        self._tools = None
        self._tools_fetch = None

    async def _restore_subscriptions(self) -> None:
        # Cleared first: subscribe() re-adds each type once the server acknowledges it.
        previous = list(self._subscriptions)
        self._subscriptions.clear()
        for event_type in previous:
            try:
                await self.subscribe(event_type)
            except ProtocolError as exc:
                logger.error(
                    "Failed to restore %s subscription on MCP server %s: %s",
                    event_type,
                    self._name,
                    exc,
                )

    def _on_event(self, event: Event) -> None:
        try:
            self._events.put_nowait(event)
        except asyncio.QueueFull:
            self._dropped_events += 1
            logger.warning(
                "Event queue for MCP server %s is full, dropping %s event",
                self._name,
                event.type,
            )
