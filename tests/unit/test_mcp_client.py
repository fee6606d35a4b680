"""Unit tests for the MCP capability client."""

import asyncio
from datetime import timedelta

import httpx
import pytest
from mcp import types
from mcp.shared.exceptions import McpError

from toolbridge.core.mcp.client import (
    CLIENT_INFO,
    CapabilityClient,
    describe_error,
    is_unreachable_error,
)
from toolbridge.core.mcp.exceptions import (
    CallTimeoutError,
    RemoteError,
    ServerConnectionError,
    TransportError,
)


def _mcp_error(code: int, message: str) -> McpError:
    return McpError(types.ErrorData(code=code, message=message))


async def _connected_client(session, transport, name: str = "srv") -> CapabilityClient:
    client = CapabilityClient(name, session_factory=session.factory)
    await client.connect(transport, timeout=5)
    return client


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true or the timeout expires."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate() and asyncio.get_running_loop().time() < deadline:
        await asyncio.sleep(0.01)


class TestErrorHelpers:
    """Tests for error classification helpers."""

    def test_connect_error_is_unreachable(self):
        """Test that refused connections count as unreachable."""
        assert is_unreachable_error(httpx.ConnectError("All connection attempts failed"))
        assert is_unreachable_error(ConnectionRefusedError())

    def test_unreachable_inside_exception_group(self):
        """Test that errors nested in groups and causes are found."""
        try:
            try:
                raise OSError("getaddrinfo ENOTFOUND example.invalid")
            except OSError as inner:
                raise RuntimeError("handshake failed") from inner
        except RuntimeError as e:
            group = ExceptionGroup("task group", [e])

        assert is_unreachable_error(group)

    def test_other_errors_are_not_unreachable(self):
        """Test that ordinary failures are not classified as unreachable."""
        assert not is_unreachable_error(ValueError("bad handshake"))

    def test_describe_error_unwraps_groups(self):
        """Test that the first member of a group is described."""
        group = ExceptionGroup("outer", [ValueError("inner problem")])
        assert describe_error(group) == "inner problem"
        assert describe_error(TimeoutError()) == "TimeoutError"


class TestConnect:
    """Tests for CapabilityClient.connect."""

    @pytest.mark.asyncio
    async def test_connect_success(self, make_session, make_transport):
        """Test a successful handshake."""
        session = make_session()
        transport = make_transport()

        client = await _connected_client(session, transport)

        assert client.connected
        assert transport.opened
        assert session.entered
        assert session.client_info == CLIENT_INFO
        assert session.message_handler is not None

        await client.close()

    @pytest.mark.asyncio
    async def test_handshake_failure_closes_transport(self, make_session, make_transport):
        """Test that a failed handshake raises and releases the transport."""
        session = make_session(init_error=RuntimeError("protocol mismatch"))
        transport = make_transport()
        client = CapabilityClient("srv", session_factory=session.factory)

        with pytest.raises(ServerConnectionError) as exc_info:
            await client.connect(transport, timeout=5)

        assert "protocol mismatch" in str(exc_info.value)
        assert exc_info.value.server_name == "srv"
        assert not exc_info.value.unreachable
        assert transport.closed
        assert not client.connected

    @pytest.mark.asyncio
    async def test_unreachable_server(self, make_session, make_transport):
        """Test that connection refusals are flagged as unreachable."""
        session = make_session()
        transport = make_transport(error=httpx.ConnectError("Connection refused"))
        client = CapabilityClient("srv", session_factory=session.factory)

        with pytest.raises(ServerConnectionError) as exc_info:
            await client.connect(transport, timeout=5)

        assert exc_info.value.unreachable
        assert not session.entered

    @pytest.mark.asyncio
    async def test_connect_timeout_closes_transport(self, make_session, make_transport):
        """Test that a hanging handshake times out and is torn down."""
        session = make_session(init_delay=30)
        transport = make_transport()
        client = CapabilityClient("srv", session_factory=session.factory)

        with pytest.raises(ServerConnectionError, match="Timeout"):
            await client.connect(transport, timeout=0.05)

        assert transport.closed
        assert session.exited
        assert not client.connected

    @pytest.mark.asyncio
    async def test_client_cannot_be_reused(self, make_session, make_transport):
        """Test that a client connects at most once."""
        session = make_session()
        client = await _connected_client(session, make_transport())

        with pytest.raises(ServerConnectionError, match="already been used"):
            await client.connect(make_transport(), timeout=5)

        await client.close()


class TestListOperations:
    """Tests for CapabilityClient.list_operations."""

    @pytest.mark.asyncio
    async def test_list_operations(self, make_session, make_transport):
        """Test that tools are returned as plain dicts."""
        schema = {"type": "object", "properties": {"text": {"type": "string"}}}
        session = make_session(
            tools=[
                {"name": "echo", "description": "Echo text", "inputSchema": schema},
                {"name": "ping"},
            ]
        )
        client = await _connected_client(session, make_transport())

        operations = await client.list_operations(timeout=5)

        assert operations == [
            {"name": "echo", "description": "Echo text", "parameters": schema},
            {"name": "ping", "description": "", "parameters": {"type": "object", "properties": {}}},
        ]

        await client.close()

    @pytest.mark.asyncio
    async def test_list_operations_remote_error(self, make_session, make_transport):
        """Test that protocol errors become RemoteError."""
        session = make_session(list_error=_mcp_error(-32601, "Method not found"))
        client = await _connected_client(session, make_transport())

        with pytest.raises(RemoteError) as exc_info:
            await client.list_operations(timeout=5)

        assert exc_info.value.code == -32601
        assert "Method not found" in str(exc_info.value)

        await client.close()


class TestCall:
    """Tests for CapabilityClient.call."""

    @pytest.mark.asyncio
    async def test_call_returns_result(self, make_session, make_transport):
        """Test a successful call."""
        session = make_session()
        client = await _connected_client(session, make_transport())

        result = await client.call("echo", {"text": "hi"}, timeout=7)

        assert result["content"] == [{"type": "text", "text": "ok"}]
        assert result["isError"] is False
        assert session.calls == [("echo", {"text": "hi"}, timedelta(seconds=7))]

        await client.close()

    @pytest.mark.asyncio
    async def test_call_without_arguments(self, make_session, make_transport):
        """Test that missing arguments are sent as an empty object."""
        session = make_session()
        client = await _connected_client(session, make_transport())

        await client.call("echo", None, timeout=5)

        assert session.calls[0][1] == {}

        await client.close()

    @pytest.mark.asyncio
    async def test_call_timeout(self, make_session, make_transport):
        """Test that a slow call raises CallTimeoutError."""
        session = make_session(call_delay=30)
        client = await _connected_client(session, make_transport())

        with pytest.raises(CallTimeoutError) as exc_info:
            await client.call("echo", {}, timeout=0.05)

        assert exc_info.value.operation == "echo"
        assert "timed out after 0.05 seconds" in str(exc_info.value)
        # The connection survives a timed out call
        assert client.connected

        await client.close()

    @pytest.mark.asyncio
    async def test_call_timeout_is_independent_of_connect_timeout(self, make_session, make_transport):
        """Test that a call may outlast the handshake timeout."""
        session = make_session(call_delay=0.2)
        client = CapabilityClient("srv", session_factory=session.factory)
        await client.connect(make_transport(), timeout=0.05)

        result = await client.call("echo", {}, timeout=5)

        assert result["content"][0]["text"] == "ok"

        await client.close()

    @pytest.mark.asyncio
    async def test_server_side_timeout(self, make_session, make_transport):
        """Test that a request timeout reported by the SDK maps to CallTimeoutError."""
        session = make_session(call_error=_mcp_error(408, "Timed out while waiting for response"))
        client = await _connected_client(session, make_transport())

        with pytest.raises(CallTimeoutError):
            await client.call("echo", {}, timeout=1)

        await client.close()

    @pytest.mark.asyncio
    async def test_connection_closed_notifies(self, make_session, make_transport):
        """Test that a closed connection raises TransportError and reports the fault."""
        session = make_session(call_error=_mcp_error(-32000, "Connection closed"))
        client = await _connected_client(session, make_transport())
        faults = []
        client.on_error(faults.append)

        with pytest.raises(TransportError):
            await client.call("echo", {}, timeout=1)

        assert len(faults) == 1
        assert isinstance(faults[0], TransportError)

        await client.close()

    @pytest.mark.asyncio
    async def test_error_result(self, make_session, make_transport):
        """Test that an isError result raises RemoteError with its text."""
        session = make_session(
            call_result=types.CallToolResult(
                content=[types.TextContent(type="text", text="division by zero")],
                isError=True,
            )
        )
        client = await _connected_client(session, make_transport())

        with pytest.raises(RemoteError, match="division by zero") as exc_info:
            await client.call("divide", {"a": 1, "b": 0}, timeout=1)

        assert exc_info.value.server_name == "srv"

        await client.close()

    @pytest.mark.asyncio
    async def test_call_after_close(self, make_session, make_transport):
        """Test that calls on a closed client fail fast."""
        client = await _connected_client(make_session(), make_transport())
        await client.close()

        with pytest.raises(TransportError, match="not connected"):
            await client.call("echo", {}, timeout=1)


class TestFaultsAndClose:
    """Tests for asynchronous faults and shutdown."""

    @pytest.mark.asyncio
    async def test_session_exception_notifies(self, make_session, make_transport):
        """Test that transport exceptions delivered to the session reach on_error."""
        session = make_session()
        client = await _connected_client(session, make_transport())
        faults = []
        client.on_error(faults.append)

        await session.message_handler(RuntimeError("stdout closed"))
        await session.message_handler(object())

        assert [str(f) for f in faults] == ["stdout closed"]

        await client.close()

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_others(self, make_session, make_transport):
        """Test that one failing error callback does not hide the fault from others."""
        session = make_session()
        client = await _connected_client(session, make_transport())
        seen = []

        def broken(error):
            raise ValueError("listener bug")

        client.on_error(broken)
        client.on_error(seen.append)

        await session.message_handler(RuntimeError("gone"))

        assert len(seen) == 1

        await client.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, make_session, make_transport):
        """Test that closing twice is harmless."""
        session = make_session()
        transport = make_transport()
        client = await _connected_client(session, transport)

        await client.close()
        await client.close()

        assert not client.connected
        assert session.exited
        assert transport.closed

    @pytest.mark.asyncio
    async def test_close_before_connect(self):
        """Test that closing an unused client is a no-op."""
        client = CapabilityClient("srv")

        await client.close()

        assert not client.connected

    @pytest.mark.asyncio
    async def test_close_during_call(self, make_session, make_transport):
        """Test that closing while a call is pending tears the connection down."""
        session = make_session(call_delay=30)
        client = await _connected_client(session, make_transport())

        pending = asyncio.create_task(client.call("echo", {}, timeout=30))
        await asyncio.sleep(0.01)
        await client.close()
        pending.cancel()
        await asyncio.gather(pending, return_exceptions=True)

        assert session.exited

    @pytest.mark.asyncio
    async def test_server_hang_up_notifies(self, make_session, make_transport):
        """Test that a server ending its stream is reported and disconnects the client."""
        session = make_session()
        transport = make_transport()
        client = await _connected_client(session, transport)
        faults = []
        client.on_error(faults.append)

        await transport.hang_up()
        await _wait_until(lambda: faults)

        assert len(faults) == 1
        assert isinstance(faults[0], TransportError)
        assert str(faults[0]) == "[srv] Server closed the connection"
        assert not client.connected
        await _wait_until(lambda: transport.closed)
        assert session.exited

        with pytest.raises(TransportError, match="not connected"):
            await client.call("echo", {}, timeout=5)

        await client.close()
        assert len(faults) == 1

    @pytest.mark.asyncio
    async def test_close_does_not_report_hang_up(self, make_session, make_transport):
        """Test that the stream ending during close() is not a fault."""
        session = make_session()
        transport = make_transport()
        client = await _connected_client(session, transport)
        faults = []
        client.on_error(faults.append)

        await client.close()
        await asyncio.sleep(0.05)

        assert faults == []
        assert transport.closed
