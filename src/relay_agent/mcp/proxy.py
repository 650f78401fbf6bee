"""
Upstream session proxy.

Forwards JSON-RPC calls to an authenticated HTTP backend and hides that
backend's session lifecycle: the session is created lazily on the first call,
shared by every call in flight, and re-established once when the backend
reports it expired.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import aiohttp
from pydantic import BaseModel, Field

from .. import __version__
from ..errors import ConfigurationError, UpstreamProtocolError, UpstreamSessionExpired
from .config import UpstreamConfig

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
CLIENT_INFO = {"name": "relay-agent-proxy", "version": __version__}


class UpstreamSession(BaseModel):
    """An established upstream session. `session_id` is None when the backend offers none."""

    session_id: Optional[str] = Field(default=None, description="Opaque session token")
    generation: int = Field(description="Increments with every handshake")

    class Config:
        frozen = True


class SessionManager:
    """
    Owns the single live upstream session.

    Creation is single-flight: while one handshake is running, every other
    caller awaits that same handshake instead of starting its own.
    """

    def __init__(self, handshake: Callable[[], Awaitable[Optional[str]]]):
        self._handshake = handshake
        self._session: Optional[UpstreamSession] = None
        self._pending: Optional[asyncio.Future] = None
        self._generation = 0

    @property
    def session(self) -> Optional[UpstreamSession]:
        return self._session

    @property
    def handshakes(self) -> int:
        return self._generation

    async def get_or_create_session(self) -> UpstreamSession:
        if self._session is not None:
            return self._session

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._create())

        # Shielded so one cancelled waiter does not abort the handshake for the rest
        return await asyncio.shield(self._pending)

    async def _create(self) -> UpstreamSession:
        try:
            session_id = await self._handshake()
            self._generation += 1
            self._session = UpstreamSession(
                session_id=session_id, generation=self._generation
            )
            logger.info(
                f"Upstream session established (generation {self._generation})"
            )
            return self._session
        finally:
            self._pending = None

    def invalidate(self, stale: UpstreamSession) -> None:
        """Drop the session if it is still the one that was reported expired."""
        if self._session is not None and self._session.generation == stale.generation:
            logger.info(f"Invalidating upstream session (generation {stale.generation})")
            self._session = None

    def reset(self) -> None:
        """Forget the current session unconditionally."""
        self._session = None


def parse_rpc_body(text: str) -> Dict[str, Any]:
    """Decode a JSON-RPC message from a plain JSON or an SSE response body."""
    for line in text.split("\n"):
        if line.startswith("data: "):
            try:
                return json.loads(line[6:])
            except json.JSONDecodeError:
                continue

    try:
        message = json.loads(text)
    except json.JSONDecodeError:
        raise UpstreamProtocolError(f"Could not parse upstream response: {text[:200]}")
    if not isinstance(message, dict):
        raise UpstreamProtocolError(f"Unexpected upstream response: {text[:200]}")
    return message


class UpstreamSessionProxy:
    """
    Forwards calls to the upstream backend on behalf of the tool server.

    Usage:
        async with UpstreamSessionProxy(UpstreamConfig(url=..., token=...)) as proxy:
            result = await proxy.call_tool("get_me", {})
    """

    def __init__(
        self,
        config: UpstreamConfig,
        http_session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config
        self.sessions = SessionManager(self._handshake)
        self._credential = config.token
        self._http = http_session
        self._owns_http = http_session is None
        self._ids = itertools.count()

    @property
    def has_credential(self) -> bool:
        return bool(self._credential)

    def set_credential(self, token: str) -> None:
        """Switch the bearer credential; the next call opens a fresh session."""
        self._credential = token
        self.sessions.reset()
        logger.info("Upstream credential updated")

    def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._http = aiohttp.ClientSession(timeout=timeout)
            self._owns_http = True
        return self._http

    async def close(self) -> None:
        if self._http is not None and self._owns_http and not self._http.closed:
            await self._http.close()
        self._http = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _headers(self, session_id: Optional[str]) -> Dict[str, str]:
        if not self._credential:
            raise ConfigurationError(
                f"No upstream credential configured; call '{self.config.credential_tool}' first"
            )

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            "Authorization": f"Bearer {self._credential}",
            **self.config.headers,
        }
        if session_id:
            headers[SESSION_HEADER] = session_id
        return headers

    def _envelope(self, method: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or {},
            "id": next(self._ids),
        }

    async def _post(
        self, payload: Dict[str, Any], session_id: Optional[str]
    ) -> Tuple[int, Optional[str], str]:
        """POST one message; returns (status, offered session token, body)."""
        headers = self._headers(session_id)
        try:
            async with self._get_http().post(
                self.config.url, json=payload, headers=headers
            ) as response:
                body = await response.text()
                return response.status, response.headers.get(SESSION_HEADER), body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamProtocolError(f"Upstream request failed: {e}")

    async def _handshake(self) -> Optional[str]:
        """Run `initialize` and return the session token, if one was offered."""
        payload = self._envelope(
            "initialize",
            {
                "protocolVersion": self.config.protocol_version,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
        )
        status, session_id, body = await self._post(payload, None)
        if not 200 <= status < 300:
            raise UpstreamProtocolError(
                f"Upstream initialize failed with HTTP {status}", status=status, body=body
            )

        message = parse_rpc_body(body)
        if "error" in message:
            raise UpstreamProtocolError(
                f"Upstream initialize error: {message['error']}", status=status, body=body
            )

        logger.debug(f"Upstream initialize ok (session token offered: {bool(session_id)})")

        notification = {"jsonrpc": "2.0", "method": "notifications/initialized"}
        status, _, _ = await self._post(notification, session_id)
        if not 200 <= status < 300:
            logger.warning(f"Upstream rejected initialized notification (HTTP {status})")

        return session_id

    def _is_session_expired(self, status: int, body: str) -> bool:
        if not 400 <= status < 500:
            return False
        lowered = body.lower()
        return any(marker.lower() in lowered for marker in self.config.expiry_markers)

    async def request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Forward one JSON-RPC call and return its `result`.

        Raises:
            UpstreamSessionExpired: when the session is rejected again right
                after being re-established
            UpstreamProtocolError: for any other non-success response
            ConfigurationError: when no credential is set
        """
        payload = self._envelope(method, params)
        session = await self.sessions.get_or_create_session()
        status, _, body = await self._post(payload, session.session_id)

        if self._is_session_expired(status, body):
            logger.info(f"Upstream session expired during {method}; re-initializing")
            self.sessions.invalidate(session)
            session = await self.sessions.get_or_create_session()
            status, _, body = await self._post(payload, session.session_id)
            if self._is_session_expired(status, body):
                raise UpstreamSessionExpired(
                    "Upstream rejected the session again after re-initializing",
                    status=status,
                    body=body,
                )

        if not 200 <= status < 300:
            raise UpstreamProtocolError(
                f"Upstream returned HTTP {status}: {body[:500]}", status=status, body=body
            )

        message = parse_rpc_body(body)
        if "error" in message:
            error = message["error"] or {}
            raise UpstreamProtocolError(
                f"Upstream error {error.get('code')}: {error.get('message')}",
                status=status,
                body=body,
            )
        return message.get("result") or {}

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Forward a `tools/call`, except for the locally handled credential tool."""
        if name == self.config.credential_tool:
            token = str((arguments or {}).get("token") or "").strip()
            if not token:
                return {"error": {"code": -32602, "message": "Missing parameter: token"}}
            self.set_credential(token)
            return {"content": [{"type": "text", "text": "Token saved for upstream calls."}]}

        return await self.request("tools/call", {"name": name, "arguments": arguments or {}})
