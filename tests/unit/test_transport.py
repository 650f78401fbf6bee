"""
Unit tests for the stdio JSON-RPC transport.

The server side is a real subprocess: a tiny inline script for wire-level
checks, and the bundled tool server for an end-to-end round trip.
"""

import sys
import textwrap

import pytest

from relay_agent.errors import TransportError
from relay_agent.mcp.config import MCPServerConfig
from relay_agent.mcp.transport import CLIENT_INFO, PROTOCOL_VERSION, StdioTransport

# Answers every request with the id and method it saw; `fail` gets an RPC
# error and `quit` makes the process exit without answering.
RECORDING_SERVER = textwrap.dedent(
    """
    import json, sys

    for line in sys.stdin:
        message = json.loads(line)
        if "id" not in message:
            continue
        method = message["method"]
        if method == "quit":
            sys.exit(0)
        if method == "fail":
            reply = {"jsonrpc": "2.0", "id": message["id"],
                     "error": {"code": -32000, "message": "boom"}}
        elif method == "initialize":
            reply = {"jsonrpc": "2.0", "id": message["id"], "result": {
                "protocolVersion": message["params"]["protocolVersion"],
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "recorder", "version": "1"},
                "clientName": message["params"]["clientInfo"]["name"],
            }}
        elif method == "tools/list":
            reply = {"jsonrpc": "2.0", "id": message["id"], "result": {"tools": [
                {"name": "echo", "description": "Echo",
                 "inputSchema": {"type": "object",
                                 "properties": {"message": {"type": "string"}},
                                 "required": ["message"]}}
            ]}}
        else:
            reply = {"jsonrpc": "2.0", "id": message["id"],
                     "result": {"seen_id": message["id"], "method": method,
                                "params": message.get("params")}}
        sys.stdout.write("\\n")
        sys.stdout.write(json.dumps(reply) + "\\n")
        sys.stdout.flush()
    """
)


def recording_config(**kwargs) -> MCPServerConfig:
    return MCPServerConfig(
        name="recorder", command=sys.executable, args=["-c", RECORDING_SERVER], **kwargs
    )


@pytest.mark.asyncio
async def test_connect_runs_handshake_and_lists_tools():
    async with StdioTransport(recording_config()) as transport:
        assert transport.is_connected
        assert transport.server_info == {"name": "recorder", "version": "1"}
        tools = transport.get_tools()
        assert [t.name for t in tools] == ["echo"]
        assert tools[0].required_fields == ["message"]

    assert not transport.is_connected


@pytest.mark.asyncio
async def test_request_ids_start_at_zero_and_increase():
    async with StdioTransport(recording_config()) as transport:
        # initialize was id 0, tools/list id 1
        first = await transport.call_tool("echo", {"message": "a"})
        second = await transport.call_tool("echo", {"message": "b"})

    assert first["seen_id"] == 2
    assert second["seen_id"] == 3
    assert first["method"] == "tools/call"
    assert first["params"] == {"name": "echo", "arguments": {"message": "a"}}


@pytest.mark.asyncio
async def test_rpc_error_raises_transport_error():
    async with StdioTransport(recording_config()) as transport:
        with pytest.raises(TransportError) as exc_info:
            await transport._send_request("fail")

    assert exc_info.value.code == -32000
    assert "boom" in str(exc_info.value)


@pytest.mark.asyncio
async def test_server_exit_fails_pending_request():
    async with StdioTransport(recording_config()) as transport:
        with pytest.raises(TransportError):
            await transport._send_request("quit")


@pytest.mark.asyncio
async def test_call_without_connect_raises():
    transport = StdioTransport(recording_config())

    with pytest.raises(TransportError):
        await transport.call_tool("echo", {"message": "x"})


@pytest.mark.asyncio
async def test_missing_executable_raises_transport_error():
    config = MCPServerConfig(name="nope", command="/nonexistent/relay-server")

    with pytest.raises(TransportError):
        await StdioTransport(config).connect()


@pytest.mark.asyncio
async def test_round_trip_with_bundled_server():
    config = MCPServerConfig(
        name="relay",
        command=sys.executable,
        args=["-m", "relay_agent.cli", "serve"],
        timeout=30,
    )

    async with StdioTransport(config) as transport:
        names = [t.name for t in transport.get_tools()]
        result = await transport.call_tool("echo", {"message": "hello"})

    assert names[0] == "echo"
    assert "create_issue" in names
    assert result == {"content": [{"type": "text", "text": "hello"}]}


def test_client_info():
    assert CLIENT_INFO["name"] == "relay-agent"
    assert PROTOCOL_VERSION == "2025-03-26"
