"""
Model Context Protocol (MCP) plumbing.

The client-side stdio transport, the tool-execution server, the upstream
session proxy it forwards to, and the catalog stores that define its tools.
"""

from .config import MCPServerConfig, UpstreamConfig
from .catalog import CatalogStore, JsonFileCatalogStore, HttpCatalogStore
from .transport import StdioTransport
from .proxy import UpstreamSessionProxy, SessionManager, UpstreamSession
from .server import ToolServer

__all__ = [
    "MCPServerConfig",
    "UpstreamConfig",
    "CatalogStore",
    "JsonFileCatalogStore",
    "HttpCatalogStore",
    "StdioTransport",
    "UpstreamSessionProxy",
    "SessionManager",
    "UpstreamSession",
    "ToolServer",
]
