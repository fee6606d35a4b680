"""MCP capability client.

Wraps one transport into a protocol-speaking client. The client owns its
transport: the connection is opened in a dedicated runner task that keeps the
exit stack alive until ``close()`` is called, since the anyio cancel scopes
used by the MCP SDK must be exited by the task that entered them. A server
that closes its stream on its own is reported to the error callbacks.
"""

import asyncio
import logging
import socket
from collections.abc import Callable
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any

import anyio
import httpx
from mcp import ClientSession
from mcp.shared.exceptions import McpError
from mcp.types import Implementation

from toolbridge import __version__
from toolbridge.core.mcp.exceptions import (
    CallTimeoutError,
    RemoteError,
    ServerConnectionError,
    TransportError,
)
from toolbridge.core.mcp.transport import MCPTransport

logger = logging.getLogger(__name__)

CLIENT_INFO = Implementation(name="toolbridge-mcp-client", version=__version__)

# JSON-RPC error code the SDK reports when the connection closes under a request
CONNECTION_CLOSED_CODE = -32000

_UNREACHABLE_MARKERS = (
    "ENOTFOUND",
    "ECONNREFUSED",
    "Connection refused",
    "Name or service not known",
    "nodename nor servname provided",
)

_STREAM_ERRORS = (anyio.ClosedResourceError, anyio.BrokenResourceError, anyio.EndOfStream)

ErrorCallback = Callable[[Exception], None]


def _iter_error_chain(error: BaseException):
    """Yield an error, its nested group members and its causes."""
    pending = [error]
    seen: set[int] = set()
    while pending:
        exc = pending.pop()
        if id(exc) in seen:
            continue
        seen.add(id(exc))
        yield exc
        if isinstance(exc, BaseExceptionGroup):
            pending.extend(exc.exceptions)
        for linked in (exc.__cause__, exc.__context__):
            if linked is not None:
                pending.append(linked)


def is_unreachable_error(error: BaseException) -> bool:
    """Check whether an error means the server could not be reached at all.

    Args:
        error: Error raised while connecting.

    Returns:
        True for DNS failures and refused connections.
    """
    for exc in _iter_error_chain(error):
        if isinstance(exc, (httpx.ConnectError, ConnectionRefusedError, socket.gaierror)):
            return True
        message = str(exc)
        if any(marker in message for marker in _UNREACHABLE_MARKERS):
            return True
    return False


def describe_error(error: BaseException) -> str:
    """Concise message for an error, unwrapping exception groups."""
    while isinstance(error, BaseExceptionGroup) and error.exceptions:
        error = error.exceptions[0]
    return str(error) or error.__class__.__name__


async def _cancel_task(task: asyncio.Task) -> None:
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


def _content_text(result: Any) -> str:
    """Join the text parts of a tool result."""
    parts = [getattr(item, "text", None) for item in getattr(result, "content", None) or []]
    return "\n".join(part for part in parts if part)


class CapabilityClient:
    """Client for a single MCP server."""

    def __init__(
        self,
        server_name: str,
        session_factory: Callable[..., Any] = ClientSession,
    ) -> None:
        """Initialize the client.

        Args:
            server_name: Name of the server this client talks to.
            session_factory: Factory building the protocol session from
                (read_stream, write_stream).
        """
        self.server_name = server_name
        self._session_factory = session_factory
        self._session: Any = None
        self._runner: asyncio.Task | None = None
        self._ready: asyncio.Future | None = None
        self._closing: asyncio.Event | None = None
        self._stream_ended: asyncio.Event | None = None
        self._closed = False
        self._error_callbacks: list[ErrorCallback] = []

    @property
    def connected(self) -> bool:
        """Check if the handshake completed and the client is open."""
        return self._session is not None and not self._closed

    def on_error(self, callback: ErrorCallback) -> None:
        """Register a callback for asynchronous transport faults.

        Args:
            callback: Called with the fault. The client never reconnects.
        """
        self._error_callbacks.append(callback)

    async def connect(self, transport: MCPTransport, timeout: float) -> None:
        """Open the transport and perform the MCP handshake.

        Args:
            transport: Unconnected transport.
            timeout: Handshake timeout in seconds.

        Raises:
            ServerConnectionError: If the handshake fails or times out. The
                transport is closed before the error is raised.
        """
        if self._runner is not None or self._closed:
            raise ServerConnectionError("Client has already been used", self.server_name)

        self._ready = asyncio.get_running_loop().create_future()
        self._closing = asyncio.Event()
        self._stream_ended = asyncio.Event()
        self._runner = asyncio.create_task(
            self._run(transport),
            name=f"mcp-client-{self.server_name}",
        )

        try:
            await asyncio.wait_for(asyncio.shield(self._ready), timeout=timeout)
        except asyncio.TimeoutError as e:
            await self.close()
            raise ServerConnectionError(
                f"Timeout ({timeout:g}s) connecting to {transport.describe()}",
                self.server_name,
            ) from e
        except Exception as e:
            await self.close()
            raise ServerConnectionError(
                describe_error(e),
                self.server_name,
                unreachable=is_unreachable_error(e),
            ) from e

        logger.debug(f"Connected to '{self.server_name}' via {transport.kind.value}")

    async def _run(self, transport: MCPTransport) -> None:
        """Own the connection from open to close."""
        try:
            async with AsyncExitStack() as stack:
                read, write = await transport.open(stack)
                session = await stack.enter_async_context(
                    self._session_factory(
                        self._relay_stream(stack, read),
                        write,
                        message_handler=self._handle_message,
                        client_info=CLIENT_INFO,
                    )
                )
                await session.initialize()
                self._session = session
                self._ready.set_result(None)
                await self._wait_until_closed()

                if not self._closing.is_set():
                    self._session = None
                    self._notify_error(
                        TransportError("Server closed the connection", self.server_name)
                    )
        except Exception as e:
            if not self._ready.done():
                self._ready.set_exception(e)
            elif not self._closing.is_set() and not self._stream_ended.is_set():
                self._notify_error(e)
            else:
                logger.debug(f"Ignored error while closing '{self.server_name}': {describe_error(e)}")
        finally:
            self._session = None

    def _relay_stream(self, stack: AsyncExitStack, read: Any) -> Any:
        """Put a relay between the transport and the session.

        The SDK ends its receive loop quietly when the server closes the
        stream, so the relay is where end-of-stream becomes visible.
        """
        sink, relayed = anyio.create_memory_object_stream(0)
        relay = asyncio.create_task(
            self._relay(read, sink),
            name=f"mcp-relay-{self.server_name}",
        )
        stack.push_async_callback(_cancel_task, relay)
        return relayed

    async def _relay(self, source: Any, sink: Any) -> None:
        async with sink:
            try:
                async for message in source:
                    await sink.send(message)
            except _STREAM_ERRORS as e:
                logger.debug(f"Stream from '{self.server_name}' closed: {describe_error(e)}")
        self._stream_ended.set()

    async def _wait_until_closed(self) -> None:
        """Wait for close() or for the server to end the stream."""
        waiters = [
            asyncio.ensure_future(self._closing.wait()),
            asyncio.ensure_future(self._stream_ended.wait()),
        ]
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

    async def _handle_message(self, message: Any) -> None:
        """Session message handler; transport faults arrive as exceptions."""
        if isinstance(message, Exception):
            self._notify_error(message)

    def _notify_error(self, error: Exception) -> None:
        for callback in list(self._error_callbacks):
            try:
                callback(error)
            except Exception:
                logger.exception(f"Error callback failed for '{self.server_name}'")

    def _require_session(self) -> Any:
        if self._session is None or self._closed:
            raise TransportError("Client is not connected", self.server_name)
        return self._session

    async def _request(self, awaitable: Any, operation: str, timeout: float) -> Any:
        """Await one protocol request, translating failures."""
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise CallTimeoutError(operation, timeout, self.server_name) from e
        except McpError as e:
            code = e.error.code
            if code == httpx.codes.REQUEST_TIMEOUT:
                raise CallTimeoutError(operation, timeout, self.server_name) from e
            if code == CONNECTION_CLOSED_CODE:
                error = TransportError(
                    f"Connection closed during '{operation}'", self.server_name
                )
                self._notify_error(error)
                raise error from e
            raise RemoteError(e.error.message, self.server_name, code=code) from e
        except _STREAM_ERRORS as e:
            error = TransportError(f"Connection lost during '{operation}'", self.server_name)
            self._notify_error(error)
            raise error from e

    async def list_operations(self, timeout: float) -> Any:
        """List the operations the server exposes.

        Args:
            timeout: Request timeout in seconds.

        Returns:
            List of ``{name, description, parameters}`` dicts, or the raw
            value when the server response does not hold a list.
        """
        session = self._require_session()
        result = await self._request(session.list_tools(), "tools/list", timeout)

        tools = getattr(result, "tools", None)
        if not isinstance(tools, list):
            return tools

        return [
            {
                "name": getattr(tool, "name", None),
                "description": getattr(tool, "description", None) or "",
                "parameters": getattr(tool, "inputSchema", None),
            }
            for tool in tools
        ]

    async def call(
        self,
        operation_name: str,
        arguments: dict[str, Any] | None,
        timeout: float,
    ) -> dict[str, Any]:
        """Invoke an operation on the server.

        Args:
            operation_name: Remote tool name.
            arguments: Tool arguments.
            timeout: Hard per-call timeout in seconds, independent of the
                connect timeout.

        Returns:
            The tool result as a JSON-compatible dict.

        Raises:
            CallTimeoutError: If the call does not finish in time.
            RemoteError: If the server reports a failure.
            TransportError: If the connection is closed or lost.
        """
        session = self._require_session()
        result = await self._request(
            session.call_tool(
                operation_name,
                arguments=arguments or {},
                read_timeout_seconds=timedelta(seconds=timeout),
            ),
            operation_name,
            timeout,
        )

        if getattr(result, "isError", False):
            raise RemoteError(
                _content_text(result) or f"Tool '{operation_name}' reported an error",
                self.server_name,
            )

        if hasattr(result, "model_dump"):
            return result.model_dump(mode="json", by_alias=True, exclude_none=True)
        return result

    async def close(self) -> None:
        """Close the connection. Calling it again is a no-op."""
        if self._closed:
            return
        self._closed = True

        runner = self._runner
        if runner is None:
            return

        self._closing.set()
        if not self._ready.done():
            runner.cancel()
        await asyncio.gather(runner, return_exceptions=True)
        self._session = None
        logger.debug(f"Closed MCP client for '{self.server_name}'")
