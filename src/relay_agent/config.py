"""
Settings read from the environment.

`AgentSettings` configures the client side (model backend, loop limits, the
tool server command); `ProxySettings` configures the tool server's upstream.
The CLI loads a `.env` file before calling `from_env()`.
"""

import os
import shlex
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigurationError
from .mcp.config import MCPServerConfig, UpstreamConfig

DEFAULT_MODEL_BASE_URL = "https://cloud.olakrutrim.com/v1"
DEFAULT_MODEL = "Llama-3.3-70B-Instruct"
DEFAULT_UPSTREAM_URL = "https://api.githubcopilot.com/mcp/"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _settings_error(e: ValidationError) -> ConfigurationError:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
        for err in e.errors()
    )
    return ConfigurationError(f"Invalid configuration: {problems}")


class AgentSettings(BaseModel):
    """Client-side settings."""

    model_backend: Literal["chat", "opper"] = "chat"
    model_base_url: str = DEFAULT_MODEL_BASE_URL
    model_api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    max_tokens: int = Field(default=256, gt=0)
    max_iterations: int = Field(default=10, gt=0)
    max_execution_retries: int = Field(default=2, ge=0)
    max_parameter_retries: int = Field(default=3, ge=0)
    server_command: List[str] = Field(default_factory=lambda: ["relay-agent", "serve"])

    class Config:
        protected_namespaces = ()

    @classmethod
    def from_env(cls) -> "AgentSettings":
        command = os.getenv("RELAY_SERVER_COMMAND")
        try:
            return cls(
                model_backend=os.getenv("RELAY_MODEL_BACKEND", "chat").lower(),
                model_base_url=os.getenv("RELAY_MODEL_BASE_URL", DEFAULT_MODEL_BASE_URL),
                model_api_key=os.getenv("RELAY_MODEL_API_KEY") or os.getenv("OPPER_API_KEY"),
                model=os.getenv("RELAY_MODEL", DEFAULT_MODEL),
                max_tokens=_int_env("RELAY_MAX_TOKENS", 256),
                max_iterations=_int_env("RELAY_MAX_ITERATIONS", 10),
                max_execution_retries=_int_env("RELAY_MAX_EXECUTION_RETRIES", 2),
                max_parameter_retries=_int_env("RELAY_MAX_PARAMETER_RETRIES", 3),
                server_command=shlex.split(command) if command else ["relay-agent", "serve"],
            )
        except ValidationError as e:
            raise _settings_error(e) from e

    def server_config(self) -> MCPServerConfig:
        """Stdio configuration for spawning the tool server."""
        if not self.server_command:
            raise ConfigurationError("RELAY_SERVER_COMMAND is empty")
        return MCPServerConfig(
            name="relay",
            command=self.server_command[0],
            args=self.server_command[1:],
        )


class ProxySettings(BaseModel):
    """Tool-server settings: upstream backend and catalog source."""

    upstream_url: str = DEFAULT_UPSTREAM_URL
    upstream_token: Optional[str] = None
    catalog_path: Optional[str] = None
    catalog_url: Optional[str] = None
    protocol_version: str = "2025-03-26"

    @classmethod
    def from_env(cls) -> "ProxySettings":
        try:
            return cls(
                upstream_url=os.getenv("RELAY_UPSTREAM_URL", DEFAULT_UPSTREAM_URL),
                upstream_token=os.getenv("RELAY_UPSTREAM_TOKEN") or os.getenv("GITHUB_TOKEN"),
                catalog_path=os.getenv("RELAY_CATALOG_PATH") or None,
                catalog_url=os.getenv("RELAY_CATALOG_URL") or None,
                protocol_version=os.getenv("RELAY_PROTOCOL_VERSION", "2025-03-26"),
            )
        except ValidationError as e:
            raise _settings_error(e) from e

    def upstream_config(self) -> UpstreamConfig:
        try:
            return UpstreamConfig(
                url=self.upstream_url,
                token=self.upstream_token,
                protocol_version=self.protocol_version,
            )
        except ValidationError as e:
            raise _settings_error(e) from e
