"""
Error kinds shared by the agent loop, the transport channel and the proxy.

Each kind maps to one recovery policy: parameter errors are retried through the
resolver, transport errors through backoff, session expiry through a single
re-handshake. Everything else is surfaced as-is.
"""

from typing import Optional


class RelayError(Exception):
    """Base exception for relay-agent errors."""

    pass


class ConfigurationError(RelayError):
    """Raised when required settings are missing or invalid."""

    pass


class TransportError(RelayError):
    """Raised when the JSON-RPC channel fails (closed pipe, dead process, RPC error)."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class ToolNotFound(RelayError):
    """Raised when a tool name is not part of the catalog."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' not found")
        self.name = name


class UserCancelled(RelayError):
    """Raised by a provider when the user aborts a prompt."""

    pass


class CatalogUnavailable(RelayError):
    """Raised when the tool catalog store cannot be reached or decoded."""

    pass


class ModelBackendError(RelayError):
    """Raised when the model backend returns no usable reply."""

    pass


class UpstreamError(RelayError):
    """Base exception for failures reported by the upstream backend."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class UpstreamSessionExpired(UpstreamError):
    """Raised when the upstream rejects a freshly re-established session."""

    pass


class UpstreamProtocolError(UpstreamError):
    """Raised for any non-retryable upstream failure."""

    pass


__all__ = [
    "RelayError",
    "ConfigurationError",
    "TransportError",
    "ToolNotFound",
    "UserCancelled",
    "CatalogUnavailable",
    "ModelBackendError",
    "UpstreamError",
    "UpstreamSessionExpired",
    "UpstreamProtocolError",
]
