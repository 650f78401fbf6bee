"""
MCP server configuration.

Provides declarative configuration for the tool-execution process the agent
talks to over a line-delimited JSON-RPC pipe.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Dict, List, Optional


class MCPServerConfig(BaseModel):
    """
    Declarative configuration for a stdio tool server.

    Examples:
        # The bundled relay server
        config = MCPServerConfig(
            name="relay",
            command="relay-agent",
            args=["serve"],
        )

        # Any other line-delimited JSON-RPC server
        config = MCPServerConfig(
            name="tools",
            command="node",
            args=["dist/server/server.js"],
            env={"DEBUG": "1"},
        )
    """

    name: str = Field(description="Unique identifier for this server")
    command: Optional[str] = Field(
        default=None, description="Command to execute the server process"
    )
    args: List[str] = Field(
        default_factory=list, description="Arguments for the command"
    )
    env: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables for the subprocess",
    )
    timeout: Optional[float] = Field(
        default=None,
        description="Per-request timeout in seconds (None waits indefinitely)",
    )

    @model_validator(mode="after")
    def validate_command(self):
        """Validate that a command is configured."""
        if not self.command:
            raise ValueError("command is required for stdio transport")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")
        return self


class UpstreamConfig(BaseModel):
    """
    Configuration for the HTTP backend the proxy forwards calls to.

    Examples:
        config = UpstreamConfig(
            url="https://api.githubcopilot.com/mcp/",
            token=os.getenv("GITHUB_TOKEN"),
        )
    """

    url: str = Field(description="JSON-RPC endpoint of the upstream backend")
    token: Optional[str] = Field(
        default=None, description="Bearer credential (can be set later at runtime)"
    )
    protocol_version: str = Field(
        default="2025-03-26", description="Protocol version sent on initialize"
    )
    credential_tool: str = Field(
        default="github_token",
        description="Tool name handled locally to set the bearer credential",
    )
    expiry_markers: List[str] = Field(
        default_factory=lambda: ["invalid session"],
        description="Case-insensitive body markers of an expired session",
    )
    headers: Dict[str, str] = Field(
        default_factory=dict, description="Extra HTTP headers for every request"
    )
    timeout: Optional[float] = Field(
        default=None, description="Total HTTP timeout in seconds (None disables it)"
    )

    @model_validator(mode="after")
    def validate_url(self):
        """Validate that the upstream URL is an HTTP(S) URL."""
        if not self.url.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return self
