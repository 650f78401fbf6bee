"""
Tool-execution server.

Speaks newline-delimited JSON-RPC on stdin/stdout. Tools come from the catalog
store (forwarded upstream through the session proxy) plus a few tools executed
in-process. stdout carries protocol messages only; logs go to stderr.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .. import __version__
from ..base.tool import Tool, ToolDescriptor
from ..errors import RelayError
from ..utils.decorators import tool
from .catalog import CatalogStore
from .proxy import UpstreamSessionProxy
from .transport import PROTOCOL_VERSION

logger = logging.getLogger(__name__)

SERVER_INFO = {"name": "relay-agent-server", "version": __version__}

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

_LINE_LIMIT = 16 * 1024 * 1024


@tool
def echo(message: str) -> str:
    """Echoes back your input."""
    return message


def _text_content(value: Any) -> Dict[str, Any]:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return {"content": [{"type": "text", "text": text}]}


def _error_result(code: int, message: str) -> Dict[str, Any]:
    return {"error": {"code": code, "message": message}}


class ToolServer:
    """
    Dispatches `initialize`, `tools/list` and `tools/call` requests.

    Catalog tools are forwarded to the upstream proxy; local tools run here.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        proxy: Optional[UpstreamSessionProxy] = None,
        local_tools: Optional[List[Tool]] = None,
    ):
        self.catalog = catalog
        self.proxy = proxy
        self.local_tools: Dict[str, Tool] = {
            t.name: t for t in (local_tools if local_tools is not None else [echo])
        }
        self._descriptors: Dict[str, ToolDescriptor] = {}
        self._tasks: set = set()
        self._write_lock = asyncio.Lock()

    async def start(self) -> None:
        """
        Load the catalog.

        Raises:
            CatalogUnavailable: the store cannot be reached; the server must not start
        """
        descriptors = await self.catalog.load()
        self._descriptors = {d.name: d for d in descriptors}
        logger.info(
            f"Tool server ready: {len(self._descriptors)} catalog tools, "
            f"{len(self.local_tools)} local tools"
        )

    def list_descriptors(self) -> List[ToolDescriptor]:
        tools = [t.to_descriptor() for t in self.local_tools.values()]
        tools.extend(d for name, d in self._descriptors.items() if name not in self.local_tools)
        return tools

    async def handle_message(self, message: Any) -> Optional[Dict[str, Any]]:
        """Handle one decoded message; returns the response, or None for notifications."""
        if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
            return None

        request_id = message.get("id")
        method = message.get("method")
        params = message.get("params") or {}

        if request_id is None:
            logger.debug(f"Notification received: {method}")
            return None

        if not isinstance(method, str):
            return self._error(request_id, INVALID_REQUEST, "Invalid request")

        if method == "initialize":
            result = {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {"listChanged": True}},
                "serverInfo": SERVER_INFO,
            }
        elif method == "tools/list":
            result = {"tools": [d.to_wire() for d in self.list_descriptors()]}
        elif method == "tools/call":
            result = await self._call_tool(params)
        elif method == "ping":
            result = {}
        else:
            return self._error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        return {"result": result, "jsonrpc": "2.0", "id": request_id}

    async def _call_tool(self, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments") or {}

        local = self.local_tools.get(name)
        if local is not None:
            outcome = await local.execute(**arguments)
            if outcome.success:
                return _text_content(outcome.result)
            return _error_result(INTERNAL_ERROR, outcome.error or "Tool failed")

        if name not in self._descriptors:
            return _error_result(INVALID_PARAMS, "Tool not found")

        if self.proxy is None:
            return _error_result(INTERNAL_ERROR, "No upstream backend configured")

        try:
            return await self.proxy.call_tool(name, arguments)
        except RelayError as e:
            logger.warning(f"Upstream call for {name} failed: {e}")
            return _error_result(INTERNAL_ERROR, str(e))

    @staticmethod
    def _error(request_id: Any, code: int, message: str) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "error": {"code": code, "message": message},
        }

    async def serve(self, reader: asyncio.StreamReader, writer: Any) -> None:
        """Read request lines until EOF; each request is answered on its own line."""
        while True:
            line = await reader.readline()
            if not line:
                break
            if not line.strip():
                continue

            try:
                message = json.loads(line.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.error(f"Discarding undecodable line: {e}")
                continue

            task = asyncio.create_task(self._respond(message, writer))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _respond(self, message: Any, writer: Any) -> None:
        try:
            response = await self.handle_message(message)
        except Exception:
            logger.exception("Unhandled error while handling request")
            request_id = message.get("id") if isinstance(message, dict) else None
            if request_id is None:
                return
            response = self._error(request_id, INTERNAL_ERROR, "Internal error")

        if response is None:
            return

        # One writer at a time; concurrent drain() on a paused pipe fails
        async with self._write_lock:
            writer.write((json.dumps(response) + "\n").encode("utf-8"))
            await writer.drain()

    async def serve_stdio(self) -> None:
        """Serve on the process's own stdin/stdout."""
        loop = asyncio.get_running_loop()

        reader = asyncio.StreamReader(limit=_LINE_LIMIT)
        await loop.connect_read_pipe(
            lambda: asyncio.StreamReaderProtocol(reader), sys.stdin
        )
        write_transport, write_protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, sys.stdout
        )
        writer = asyncio.StreamWriter(write_transport, write_protocol, reader, loop)

        await self.serve(reader, writer)
