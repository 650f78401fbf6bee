"""
Line-delimited JSON-RPC transport to a tool-execution process.

The transport spawns the server as a subprocess, writes one request object per
line on its stdin and matches response lines from its stdout to pending
requests by id. Request ids count up from 0 for the lifetime of the transport.
"""

import asyncio
import itertools
import json
import logging
import os
from typing import Any, Dict, List, Optional

from .. import __version__
from ..base.tool import ToolDescriptor
from ..errors import TransportError
from .config import MCPServerConfig

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-03-26"
CLIENT_INFO = {"name": "relay-agent", "version": __version__}

# Tool results (file contents, logs) easily exceed asyncio's 64 KiB line default
_LINE_LIMIT = 16 * 1024 * 1024


class StdioTransport:
    """
    JSON-RPC client for a server speaking newline-delimited JSON on stdio.

    Usage:
        async with StdioTransport(config) as transport:
            tools = transport.get_tools()
            result = await transport.call_tool("echo", {"message": "hi"})
    """

    def __init__(self, config: MCPServerConfig):
        self.config = config

        self._process: Optional[asyncio.subprocess.Process] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._ids = itertools.count()
        self._pending_requests: Dict[int, asyncio.Future] = {}
        self._capabilities: Dict[str, Any] = {}
        self._tools: Dict[str, ToolDescriptor] = {}
        self._connected = False
        self.server_info: Optional[Dict[str, Any]] = None

    async def connect(self) -> None:
        """Start the server process and run the initialize handshake."""
        if self._connected:
            return

        env = None
        if self.config.env:
            env = {**os.environ, **self.config.env}

        try:
            self._process = await asyncio.create_subprocess_exec(
                self.config.command,
                *self.config.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                env=env,
                limit=_LINE_LIMIT,
            )
        except OSError as e:
            raise TransportError(f"Failed to start tool server '{self.config.command}': {e}")

        self._reader_task = asyncio.create_task(self._read_responses())

        try:
            await self._initialize()
        except TransportError:
            await self.disconnect()
            raise

        self._connected = True
        logger.info(
            f"Connected to tool server '{self.config.name}' "
            f"({len(self._tools)} tools)"
        )

    async def disconnect(self) -> None:
        """Stop the server process and fail any request still in flight."""
        process = self._process
        self._process = None
        self._connected = False

        if process is not None:
            if process.stdin and not process.stdin.is_closing():
                process.stdin.close()
            if process.returncode is None:
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=5.0)
                except asyncio.TimeoutError:
                    process.kill()
                    await process.wait()
            logger.info(f"Disconnected from tool server '{self.config.name}'")

        if self._reader_task is not None:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        self._fail_pending("Transport closed")

    async def _initialize(self) -> None:
        """Run `initialize` and load the tool list if the server offers tools."""
        response = await self._send_request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
        )

        self.server_info = response.get("serverInfo")
        self._capabilities = response.get("capabilities") or {}

        await self._send_notification("notifications/initialized")

        if "tools" in self._capabilities:
            tools_response = await self._send_request("tools/list")
            self._tools = {}
            for tool in tools_response.get("tools", []):
                descriptor = ToolDescriptor.model_validate(tool)
                self._tools[descriptor.name] = descriptor

    async def _send_request(
        self, method: str, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Send a JSON-RPC request and wait for its response."""
        process = self._process
        if process is None or process.stdin is None or process.returncode is not None:
            raise TransportError("Not connected to tool server")

        request_id = next(self._ids)
        request = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or {},
            "id": request_id,
        }

        future = asyncio.get_running_loop().create_future()
        self._pending_requests[request_id] = future

        try:
            process.stdin.write((json.dumps(request) + "\n").encode("utf-8"))
            await process.stdin.drain()
            return await asyncio.wait_for(future, timeout=self.config.timeout)
        except asyncio.TimeoutError:
            raise TransportError(f"Request timeout for method: {method}")
        except (BrokenPipeError, ConnectionResetError) as e:
            raise TransportError(f"Request failed for method {method}: {e}")
        finally:
            self._pending_requests.pop(request_id, None)

    async def _send_notification(
        self, method: str, params: Optional[Dict[str, Any]] = None
    ) -> None:
        """Send a JSON-RPC notification (no id, no response)."""
        process = self._process
        if process is None or process.stdin is None:
            raise TransportError("Not connected to tool server")

        notification = {"jsonrpc": "2.0", "method": method, "params": params or {}}
        try:
            process.stdin.write((json.dumps(notification) + "\n").encode("utf-8"))
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise TransportError(f"Notification {method} failed: {e}")

    async def _read_responses(self) -> None:
        """Background task reading response lines from the server."""
        process = self._process
        if process is None or process.stdout is None:
            return

        try:
            while True:
                line = await process.stdout.readline()
                if not line:
                    break

                try:
                    response = json.loads(line.decode("utf-8").strip())
                except (json.JSONDecodeError, UnicodeDecodeError) as e:
                    logger.warning(f"Failed to parse server line: {e}")
                    continue

                if not isinstance(response, dict):
                    logger.warning(f"Ignoring non-object server line: {line[:100]!r}")
                    continue

                self._handle_response(response)
        except (ValueError, ConnectionError) as e:
            logger.error(f"Error reading tool server output: {e}")
        finally:
            self._fail_pending("Tool server closed the channel")

    def _handle_response(self, response: Dict[str, Any]) -> None:
        """Resolve the future waiting on this response."""
        if "id" not in response or response.get("method"):
            logger.debug(f"Received server notification: {response.get('method', 'unknown')}")
            return

        future = self._pending_requests.get(response["id"])
        if future is None or future.done():
            logger.debug(f"Dropping response for unknown request id {response['id']}")
            return

        if "error" in response:
            error = response["error"] or {}
            future.set_exception(
                TransportError(
                    f"RPC error {error.get('code')}: {error.get('message')}",
                    code=error.get("code"),
                )
            )
        else:
            future.set_result(response.get("result") or {})

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending_requests.values():
            if not future.done():
                future.set_exception(TransportError(reason))

    def get_tools(self) -> List[ToolDescriptor]:
        """Tools advertised by the server during the handshake."""
        return list(self._tools.values())

    async def list_tools(self) -> List[ToolDescriptor]:
        """Re-fetch the tool list from the server."""
        response = await self._send_request("tools/list")
        self._tools = {
            d.name: d
            for d in (ToolDescriptor.model_validate(t) for t in response.get("tools", []))
        }
        return self.get_tools()

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call a tool on the server.

        Returns:
            The raw `tools/call` result: `{content: [...]}` or `{error: {...}}`

        Raises:
            TransportError: if the channel fails or the server answers with a
                JSON-RPC error
        """
        if not self._connected:
            raise TransportError("Not connected to tool server")

        return await self._send_request(
            "tools/call", {"name": name, "arguments": arguments}
        )

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
