"""
relay-agent - drive a remote tool catalog from a text-producing model.

Main exports:
    - ReactAgent: Reasoning loop over a tool catalog
    - StdioTransport: JSON-RPC client for the tool-execution process
    - ToolServer: The tool-execution process itself
    - UpstreamSessionProxy: Session-managing forwarder to the upstream backend
    - tool: Decorator to create local tools from functions
    - hook: Decorator to create lifecycle hooks
"""

# Version (imported by submodules, keep first)
__version__ = "0.1.0"

from .core.agent import ReactAgent
from .core.schemas import AgentRunResult, RunStatus
from .utils.decorators import tool, hook
from .base.context import AgentContext
from .base.tool import ToolDescriptor
from .mcp.config import MCPServerConfig, UpstreamConfig
from .mcp.transport import StdioTransport
from .mcp.server import ToolServer
from .mcp.proxy import UpstreamSessionProxy
from .llm import ChatCompletionsBackend, OpperBackend

__all__ = [
    "__version__",
    "ReactAgent",
    "AgentRunResult",
    "RunStatus",
    "tool",
    "hook",
    "AgentContext",
    "ToolDescriptor",
    "MCPServerConfig",
    "UpstreamConfig",
    "StdioTransport",
    "ToolServer",
    "UpstreamSessionProxy",
    "ChatCompletionsBackend",
    "OpperBackend",
]
