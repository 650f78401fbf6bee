"""
Unit tests for the tool-execution server.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from relay_agent.errors import CatalogUnavailable, UpstreamProtocolError
from relay_agent.mcp.server import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    ToolServer,
)
from relay_agent.utils.decorators import tool


class StaticCatalog:
    def __init__(self, descriptors):
        self.descriptors = descriptors

    async def load(self):
        return list(self.descriptors)


class FailingCatalog:
    async def load(self):
        raise CatalogUnavailable("store offline")


class BufferWriter:
    """Collects what the server writes."""

    def __init__(self):
        self.lines = []

    def write(self, data: bytes) -> None:
        self.lines.extend(line for line in data.decode().splitlines() if line)

    async def drain(self) -> None:
        pass

    @property
    def messages(self):
        return [json.loads(line) for line in self.lines]


@pytest_asyncio.fixture
async def server(create_issue_tool):
    proxy = AsyncMock()
    proxy.call_tool.return_value = {"content": [{"type": "text", "text": "Created #1"}]}
    server = ToolServer(StaticCatalog([create_issue_tool]), proxy=proxy)
    await server.start()
    return server


def request(method, params=None, request_id=1):
    return {"jsonrpc": "2.0", "method": method, "params": params or {}, "id": request_id}


@pytest.mark.asyncio
async def test_initialize(server):
    response = await server.handle_message(request("initialize", request_id=0))

    assert response["id"] == 0
    assert response["result"]["protocolVersion"] == "2025-03-26"
    assert "tools" in response["result"]["capabilities"]
    assert response["result"]["serverInfo"]["name"] == "relay-agent-server"


@pytest.mark.asyncio
async def test_tools_list_has_local_then_catalog_tools(server):
    response = await server.handle_message(request("tools/list"))

    tools = response["result"]["tools"]
    assert [t["name"] for t in tools] == ["echo", "create_issue"]
    assert tools[1]["inputSchema"]["required"] == ["owner", "repo", "title"]
    assert tools[1]["category"] == "Issues"


@pytest.mark.asyncio
async def test_local_tool_runs_in_process(server):
    response = await server.handle_message(
        request("tools/call", {"name": "echo", "arguments": {"message": "hi"}})
    )

    assert response["result"] == {"content": [{"type": "text", "text": "hi"}]}
    server.proxy.call_tool.assert_not_awaited()


@pytest.mark.asyncio
async def test_catalog_tool_is_forwarded(server):
    arguments = {"owner": "o", "repo": "r", "title": "t"}

    response = await server.handle_message(
        request("tools/call", {"name": "create_issue", "arguments": arguments})
    )

    server.proxy.call_tool.assert_awaited_once_with("create_issue", arguments)
    assert response["result"]["content"][0]["text"] == "Created #1"


@pytest.mark.asyncio
async def test_unknown_tool_is_error_result(server):
    response = await server.handle_message(
        request("tools/call", {"name": "nope", "arguments": {}})
    )

    assert response["result"] == {"error": {"code": INVALID_PARAMS, "message": "Tool not found"}}


@pytest.mark.asyncio
async def test_upstream_failure_becomes_error_result(server):
    server.proxy.call_tool.side_effect = UpstreamProtocolError("HTTP 500", status=500)

    response = await server.handle_message(
        request("tools/call", {"name": "create_issue", "arguments": {}})
    )

    assert response["result"]["error"]["code"] == INTERNAL_ERROR
    assert "HTTP 500" in response["result"]["error"]["message"]


@pytest.mark.asyncio
async def test_no_proxy_configured(create_issue_tool):
    server = ToolServer(StaticCatalog([create_issue_tool]))
    await server.start()

    response = await server.handle_message(
        request("tools/call", {"name": "create_issue", "arguments": {}})
    )

    assert response["result"]["error"]["code"] == INTERNAL_ERROR


@pytest.mark.asyncio
async def test_failing_local_tool():
    @tool
    def explode(reason: str) -> str:
        raise RuntimeError(reason)

    server = ToolServer(StaticCatalog([]), local_tools=[explode])
    await server.start()

    response = await server.handle_message(
        request("tools/call", {"name": "explode", "arguments": {"reason": "kaput"}})
    )

    assert response["result"]["error"]["message"] == "kaput"


@pytest.mark.asyncio
async def test_unknown_method(server):
    response = await server.handle_message(request("resources/list"))

    assert response["error"]["code"] == METHOD_NOT_FOUND


@pytest.mark.asyncio
async def test_notifications_and_foreign_messages_get_no_response(server):
    assert await server.handle_message({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None
    assert await server.handle_message({"jsonrpc": "1.0", "method": "ping", "id": 3}) is None
    assert await server.handle_message(["not", "an", "object"]) is None


@pytest.mark.asyncio
async def test_start_fails_when_catalog_unavailable():
    server = ToolServer(FailingCatalog())

    with pytest.raises(CatalogUnavailable):
        await server.start()


@pytest.mark.asyncio
async def test_serve_answers_each_line(server):
    reader = asyncio.StreamReader()
    lines = [
        request("initialize", request_id=0),
        {"jsonrpc": "2.0", "method": "notifications/initialized"},
        request("tools/call", {"name": "echo", "arguments": {"message": "x"}}, request_id=1),
    ]
    reader.feed_data(b"".join(json.dumps(m).encode() + b"\n" for m in lines))
    reader.feed_data(b"this is not json\n\n")
    reader.feed_eof()
    writer = BufferWriter()

    await server.serve(reader, writer)

    by_id = {m["id"]: m for m in writer.messages}
    assert sorted(by_id) == [0, 1]
    assert by_id[1]["result"]["content"][0]["text"] == "x"


class SlowPipeWriter(BufferWriter):
    """Fails like a paused pipe transport when two drains overlap."""

    def __init__(self):
        super().__init__()
        self.draining = False

    async def drain(self) -> None:
        assert not self.draining, "concurrent drain"
        self.draining = True
        await asyncio.sleep(0.01)
        self.draining = False


@pytest.mark.asyncio
async def test_concurrent_responses_are_written_one_at_a_time(server):
    reader = asyncio.StreamReader()
    for request_id in range(5):
        reader.feed_data(json.dumps(request("ping", request_id=request_id)).encode() + b"\n")
    reader.feed_eof()
    writer = SlowPipeWriter()

    await server.serve(reader, writer)

    assert sorted(m["id"] for m in writer.messages) == [0, 1, 2, 3, 4]
