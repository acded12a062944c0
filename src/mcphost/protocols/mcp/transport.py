"""MCP transports — stdio and HTTP communication layers.

Each transport satisfies the :class:`MCPTransport` protocol, providing
``connect``, ``send``, ``notify``, ``close`` and ``set_event_handler``.
``send`` returns the correlated :class:`JsonRpcResponse` even when it carries
a JSON-RPC error; only wire-level failures raise.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from mcphost.protocols.errors import (
    ConnectionError,
    DecodeError,
    RequestTimeoutError,
    TransportClosedError,
    TransportError,
)
from mcphost.protocols.mcp.models import (
    EVENT_METHOD,
    Event,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    decode,
    encode,
)

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0
SESSION_HEADER = "Mcp-Session"

_STDIO_LINE_LIMIT = 16 * 1024 * 1024
_SHUTDOWN_GRACE = 5.0
_MAX_REQUEST_BYTES = 4 * 1024 * 1024
_MAX_RESPONSE_BYTES = 10 * 1024 * 1024
_MAX_ERROR_BODY_BYTES = 64 * 1024

EventHandler = Callable[[Event], None]


@runtime_checkable
class MCPTransport(Protocol):
    """Abstract transport for MCP JSON-RPC communication."""

    async def connect(self) -> None: ...
    async def send(self, request: JsonRpcRequest) -> JsonRpcResponse: ...
    async def notify(self, notification: JsonRpcNotification) -> None: ...
    async def close(self) -> None: ...
    def set_event_handler(self, handler: EventHandler | None) -> None: ...


class PendingTable:
    """Outstanding request IDs mapped to single-slot response mailboxes."""

    def __init__(self) -> None:
        self._futures: dict[int | str, asyncio.Future[JsonRpcResponse]] = {}

    def __len__(self) -> int:
        return len(self._futures)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._futures

    def register(self, request_id: int | str) -> asyncio.Future[JsonRpcResponse]:
        if request_id in self._futures:
            msg = f"request id {request_id!r} is already pending"
            raise ValueError(msg)
        future: asyncio.Future[JsonRpcResponse] = asyncio.get_running_loop().create_future()
        self._futures[request_id] = future
        return future

    def resolve(self, response: JsonRpcResponse) -> bool:
        """Deliver *response* to its mailbox.  Returns ``False`` if nobody is waiting."""
        if response.id is None:
            return False
        future = self._futures.pop(response.id, None)
        if future is None or future.done():
            return False
        future.set_result(response)
        return True

    def discard(self, request_id: int | str) -> None:
        self._futures.pop(request_id, None)

    def fail_all(self, reason: str) -> None:
        """Fail every outstanding mailbox with :class:`TransportClosedError`."""
        futures = list(self._futures.values())
        self._futures.clear()
        for future in futures:
            if not future.done():
                future.set_exception(TransportClosedError(reason))


async def _await_response(
    future: asyncio.Future[JsonRpcResponse],
    method: str,
    timeout: float,
) -> JsonRpcResponse:
    try:
        return await asyncio.wait_for(future, timeout)
    except TimeoutError as exc:
        raise RequestTimeoutError(method, timeout) from exc


class StdioTransport:
    """Communicates with an MCP server via subprocess stdin/stdout.

    Sends and receives newline-delimited JSON.  A background reader task
    consumes stdout and routes each message: responses to the pending
    request with the same ID, ``event`` notifications to the event handler.
    Stderr is drained to the debug log so it never back-pressures the child.

    Requests are serialized through a single-slot semaphore that a ``send``
    holds from its write until its response arrives; ``close`` waits for the
    slot, so shutdown lets an in-flight request finish first.
    """

    def __init__(
        self,
        command: str,
        args: Sequence[str] = (),
        env: Mapping[str, str] | None = None,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        shutdown_grace: float = _SHUTDOWN_GRACE,
    ) -> None:
        self._command = command
        self._args = list(args)
        self._env = dict(env) if env else {}
        self._request_timeout = request_timeout
        self._shutdown_grace = shutdown_grace
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._write_slot = asyncio.BoundedSemaphore(1)
        self._pending = PendingTable()
        self._on_event: EventHandler | None = None

    @property
    def argv(self) -> list[str]:
        return [*shlex.split(self._command), *self._args]

    def set_event_handler(self, handler: EventHandler | None) -> None:
        self._on_event = handler

    async def connect(self) -> None:
        """Launch the subprocess and start the stdout/stderr readers."""
        if self._process is not None:
            if self._process.returncode is None:
                return
            await self.close()

        argv = self.argv
        if not argv:
            msg = "stdio transport requires a command"
            raise ConnectionError(msg)

        logger.info("Starting MCP subprocess: %s", argv)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, **self._env} if self._env else None,
                limit=_STDIO_LINE_LIMIT,
            )
        except OSError as exc:
            raise ConnectionError(f"start subprocess {argv[0]}: {exc}") from exc

        self._process = process
        if process.stdout is not None:
            self._reader_task = asyncio.create_task(self._read_loop(process.stdout))
        if process.stderr is not None:
            self._stderr_task = asyncio.create_task(self._drain_stderr(process.stderr))
        logger.info("MCP subprocess started (pid %s)", process.pid)

    async def send(self, request: JsonRpcRequest) -> JsonRpcResponse:
        """Write *request* to stdin and wait for the response with the same ID.

        The write slot stays held until the response has been delivered, the
        wait times out, or the caller is cancelled.
        """
        self._ensure_open()
        async with self._holding_slot():
            self._ensure_open()
            future = self._pending.register(request.id)
            try:
                await self._write(encode(request) + b"\n")
                return await _await_response(future, request.method, self._request_timeout)
            finally:
                self._pending.discard(request.id)

    async def notify(self, notification: JsonRpcNotification) -> None:
        """Write a notification to stdin.  No response is expected."""
        self._ensure_open()
        async with self._holding_slot():
            self._ensure_open()
            await self._write(encode(notification) + b"\n")

    async def close(self) -> None:
        """Stop the subprocess: close stdin, SIGTERM, then SIGKILL after the grace period.

        Waits for the in-flight request, if any, to get its response first.
        Safe to call repeatedly.
        """
        process = self._process
        if process is None:
            return
        self._process = None

        try:
            async with self._write_slot:
                await self._stop(process)
        finally:
            if process.returncode is None:
                _kill(process)
            await self._join_readers()
            self._pending.fail_all("transport closed")

    # -- write slot ---------------------------------------------------------

    @asynccontextmanager
    async def _holding_slot(self) -> AsyncIterator[None]:
        await self._write_slot.acquire()
        # A cancellation that lands right as the slot is granted must not
        # leave the slot held.
        task = asyncio.current_task()
        if task is not None and task.cancelling():
            self._write_slot.release()
            raise asyncio.CancelledError
        try:
            yield
        finally:
            self._write_slot.release()

    async def _write(self, payload: bytes) -> None:
        stdin = self._stdin()
        try:
            stdin.write(payload)
            await stdin.drain()
        except OSError as exc:
            raise TransportClosedError(f"write to subprocess stdin: {exc}") from exc

    def _stdin(self) -> asyncio.StreamWriter:
        if self._process is None or self._process.stdin is None:
            msg = "Transport not connected"
            raise TransportClosedError(msg)
        return self._process.stdin

    def _ensure_open(self) -> None:
        self._stdin()
        if self._reader_task is None or self._reader_task.done():
            msg = "subprocess stdout is closed"
            raise TransportClosedError(msg)

    # -- readers ------------------------------------------------------------

    async def _read_loop(self, stdout: asyncio.StreamReader) -> None:
        reason = "subprocess stdout closed"
        try:
            while True:
                try:
                    line = await stdout.readline()
                except (ValueError, OSError) as exc:
                    reason = f"read from subprocess stdout: {exc}"
                    logger.warning("MCP stdio reader stopped: %s", reason)
                    break
                if not line:
                    break
                self._dispatch(line)
        finally:
            self._pending.fail_all(reason)
            logger.debug("MCP stdio reader exited: %s", reason)

    def _dispatch(self, line: bytes) -> None:
        if not line.strip():
            return
        try:
            message = decode(line)
        except DecodeError as exc:
            logger.debug("Skipping undecodable line from MCP subprocess: %r (%s)", line[:200], exc)
            return

        if isinstance(message, JsonRpcResponse):
            if not self._pending.resolve(message):
                logger.debug("Dropping response for unknown request id %r", message.id)
        elif isinstance(message, JsonRpcNotification) and message.method == EVENT_METHOD:
            self._deliver_event(message)
        else:
            logger.debug("Ignoring MCP message %s from subprocess", message.method)

    def _deliver_event(self, notification: JsonRpcNotification) -> None:
        try:
            event = Event.model_validate(notification.params or {})
        except ValidationError as exc:
            logger.debug("Skipping malformed event envelope: %s", exc)
            return
        if self._on_event is None:
            logger.debug("No event handler attached, dropping %s event", event.type)
            return
        self._on_event(event)

    async def _drain_stderr(self, stderr: asyncio.StreamReader) -> None:
        while True:
            try:
                line = await stderr.readline()
            except ValueError:
                # Overlong line; the reader has already discarded it.
                continue
            if not line:
                return
            logger.debug("MCP subprocess stderr: %s", line.decode(errors="replace").rstrip())

    # -- shutdown -----------------------------------------------------------

    async def _stop(self, process: asyncio.subprocess.Process) -> None:
        logger.info("Stopping MCP subprocess (pid %s)", process.pid)
        if process.stdin is not None:
            process.stdin.close()
        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
        try:
            await asyncio.wait_for(process.wait(), self._shutdown_grace)
        except TimeoutError:
            logger.warning(
                "MCP subprocess (pid %s) did not exit gracefully, killing", process.pid
            )
            _kill(process)
            await process.wait()

    async def _join_readers(self) -> None:
        tasks = [t for t in (self._reader_task, self._stderr_task) if t is not None]
        self._reader_task = None
        self._stderr_task = None
        if not tasks:
            return
        _, still_running = await asyncio.wait(tasks, timeout=self._shutdown_grace)
        for task in still_running:
            task.cancel()
        await asyncio.gather(*still_running, return_exceptions=True)


def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass


class HTTPTransport:
    """Communicates with an MCP server over streamable HTTP.

    Each JSON-RPC message is one ``POST``; the response body of a request is
    the correlated JSON-RPC response.  The ``Mcp-Session`` header from the
    server is captured and echoed on every later request until the
    transport is closed or reconnected.

    HTTP has no push channel, so an attached event handler is never called.
    """

    def __init__(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._headers = dict(headers or {})
        self._request_timeout = request_timeout
        self._client = client
        self._owns_client = client is None
        self._session_id: str | None = None
        self._on_event: EventHandler | None = None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def set_event_handler(self, handler: EventHandler | None) -> None:
        self._on_event = handler

    async def connect(self) -> None:
        """Reset session affinity and make sure an HTTP client exists."""
        self._session_id = None
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._request_timeout)
            self._owns_client = True

    async def send(self, request: JsonRpcRequest) -> JsonRpcResponse:
        """POST *request* and decode the response body."""
        body = _bounded_body(encode(request))
        async with self._post(body, request.method) as response:
            if not response.is_success:
                raise await self._status_error(response, request.method)
            raw = await _read_limited(response, _MAX_RESPONSE_BYTES)

        message = decode(raw)
        if not isinstance(message, JsonRpcResponse):
            msg = f"expected a response to {request.method}, got {type(message).__name__}"
            raise DecodeError(msg)
        if message.id != request.id:
            msg = f"response id {message.id!r} does not match request id {request.id!r}"
            raise DecodeError(msg)
        return message

    async def notify(self, notification: JsonRpcNotification) -> None:
        """POST a notification; 200 and 202 both count as delivered."""
        body = _bounded_body(encode(notification))
        async with self._post(body, notification.method) as response:
            if response.status_code not in (200, 202):
                raise await self._status_error(response, notification.method)
            await _read_limited(response, _MAX_ERROR_BODY_BYTES, truncate=True)

    async def close(self) -> None:
        """Drop the session and close the HTTP client if this transport created it."""
        self._session_id = None
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Transport not connected"
            raise TransportClosedError(msg)
        return self._client

    @asynccontextmanager
    async def _post(self, body: bytes, method: str) -> AsyncIterator[httpx.Response]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            **self._headers,
        }
        if self._session_id:
            headers[SESSION_HEADER] = self._session_id

        try:
            async with self._http().stream(
                "POST",
                self._url,
                content=body,
                headers=headers,
                timeout=self._request_timeout,
            ) as response:
                session_id = response.headers.get(SESSION_HEADER)
                if session_id:
                    self._session_id = session_id
                yield response
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(method, self._request_timeout) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"HTTP request to {self._url}: {exc}") from exc

    @staticmethod
    async def _status_error(response: httpx.Response, method: str) -> TransportError:
        raw = await _read_limited(response, _MAX_ERROR_BODY_BYTES, truncate=True)
        detail = raw.decode("utf-8", errors="replace").strip()
        return TransportError(f"MCP server returned {response.status_code} for {method}: {detail}")


def _bounded_body(body: bytes) -> bytes:
    if len(body) > _MAX_REQUEST_BYTES:
        msg = f"request body of {len(body)} bytes exceeds {_MAX_REQUEST_BYTES}"
        raise TransportError(msg)
    return body


async def _read_limited(response: httpx.Response, limit: int, *, truncate: bool = False) -> bytes:
    """Read at most *limit* bytes of the body; overflow raises unless *truncate*."""
    chunks: list[bytes] = []
    size = 0
    async for chunk in response.aiter_bytes():
        if size + len(chunk) > limit:
            if truncate:
                chunks.append(chunk[: limit - size])
                break
            msg = f"response body exceeds {limit} bytes"
            raise TransportError(msg)
        chunks.append(chunk)
        size += len(chunk)
    return b"".join(chunks)
