"""
Unit tests for configuration models.
"""

import pytest
from pydantic import ValidationError

from relay_agent.config import AgentSettings, ProxySettings
from relay_agent.errors import ConfigurationError
from relay_agent.mcp.config import MCPServerConfig, UpstreamConfig

RELAY_VARS = [
    "RELAY_MODEL_BACKEND",
    "RELAY_MODEL_BASE_URL",
    "RELAY_MODEL_API_KEY",
    "OPPER_API_KEY",
    "RELAY_MODEL",
    "RELAY_MAX_TOKENS",
    "RELAY_MAX_ITERATIONS",
    "RELAY_MAX_EXECUTION_RETRIES",
    "RELAY_MAX_PARAMETER_RETRIES",
    "RELAY_SERVER_COMMAND",
    "RELAY_UPSTREAM_URL",
    "RELAY_UPSTREAM_TOKEN",
    "GITHUB_TOKEN",
    "RELAY_CATALOG_PATH",
    "RELAY_CATALOG_URL",
    "RELAY_PROTOCOL_VERSION",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in RELAY_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_mcp_server_config_stdio():
    config = MCPServerConfig(name="relay", command="relay-agent", args=["serve"])

    assert config.command == "relay-agent"
    assert config.args == ["serve"]
    assert config.env == {}
    assert config.timeout is None


def test_mcp_server_config_requires_command():
    with pytest.raises(ValidationError, match="command is required"):
        MCPServerConfig(name="relay")


def test_mcp_server_config_rejects_non_positive_timeout():
    with pytest.raises(ValidationError):
        MCPServerConfig(name="relay", command="x", timeout=0)


def test_upstream_config_defaults():
    config = UpstreamConfig(url="https://example.com/mcp")

    assert config.protocol_version == "2025-03-26"
    assert config.credential_tool == "github_token"
    assert config.expiry_markers == ["invalid session"]


def test_upstream_config_requires_http_url():
    with pytest.raises(ValidationError, match="http"):
        UpstreamConfig(url="ftp://example.com")


def test_agent_settings_defaults(clean_env):
    settings = AgentSettings.from_env()

    assert settings.model_backend == "chat"
    assert settings.max_iterations == 10
    assert settings.max_execution_retries == 2
    assert settings.max_tokens == 256
    assert settings.server_command == ["relay-agent", "serve"]


def test_agent_settings_from_env(clean_env):
    clean_env.setenv("RELAY_MODEL_BACKEND", "OPPER")
    clean_env.setenv("OPPER_API_KEY", "op-key")
    clean_env.setenv("RELAY_MAX_ITERATIONS", "4")
    clean_env.setenv("RELAY_SERVER_COMMAND", "python -m relay_agent.cli serve")

    settings = AgentSettings.from_env()

    assert settings.model_backend == "opper"
    assert settings.model_api_key == "op-key"
    assert settings.max_iterations == 4
    config = settings.server_config()
    assert config.command == "python"
    assert config.args == ["-m", "relay_agent.cli", "serve"]


def test_agent_settings_invalid_values(clean_env):
    clean_env.setenv("RELAY_MAX_ITERATIONS", "many")
    with pytest.raises(ConfigurationError, match="RELAY_MAX_ITERATIONS"):
        AgentSettings.from_env()

    clean_env.setenv("RELAY_MAX_ITERATIONS", "0")
    with pytest.raises(ConfigurationError):
        AgentSettings.from_env()


def test_proxy_settings_from_env(clean_env):
    clean_env.setenv("GITHUB_TOKEN", "gh-token")
    clean_env.setenv("RELAY_UPSTREAM_URL", "http://localhost:9000/mcp")

    settings = ProxySettings.from_env()
    upstream = settings.upstream_config()

    assert upstream.token == "gh-token"
    assert upstream.url == "http://localhost:9000/mcp"
    assert settings.catalog_path is None


def test_proxy_settings_invalid_url(clean_env):
    clean_env.setenv("RELAY_UPSTREAM_URL", "localhost:9000")

    with pytest.raises(ConfigurationError):
        ProxySettings.from_env().upstream_config()
