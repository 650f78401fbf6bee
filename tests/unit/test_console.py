"""
Unit tests for the console providers and the run summary.
"""

from unittest.mock import patch

import pytest

from relay_agent.base.context import ObservationStep, ThoughtStep
from relay_agent.base.tool import FieldSchema, ToolUsageStat
from relay_agent.console import (
    ConsoleCheckpoint,
    ConsoleFieldProvider,
    StaticFieldProvider,
    format_summary,
)
from relay_agent.core.schemas import AgentRunResult, RunStatus
from relay_agent.errors import UserCancelled


@pytest.mark.asyncio
async def test_console_field_provider_reads_input():
    with patch("builtins.input", return_value="  Add docs  "):
        value = await ConsoleFieldProvider().resolve_field("title", FieldSchema(), True)

    assert value == "Add docs"


@pytest.mark.asyncio
async def test_console_field_provider_enum_by_number():
    schema = FieldSchema(enum=["open", "closed", "all"])

    with patch("builtins.input", return_value="2"):
        value = await ConsoleFieldProvider().resolve_field("state", schema, False)

    assert value == "closed"


@pytest.mark.asyncio
async def test_console_eof_cancels():
    with patch("builtins.input", side_effect=EOFError):
        with pytest.raises(UserCancelled):
            await ConsoleFieldProvider().resolve_field("title", FieldSchema(), True)


@pytest.mark.asyncio
async def test_console_checkpoint():
    with patch("builtins.input", side_effect=["maybe", "y"]):
        assert await ConsoleCheckpoint().confirm("Is the task complete?") is True

    with patch("builtins.input", return_value=""):
        assert await ConsoleCheckpoint().confirm("Is the task complete?") is False


@pytest.mark.asyncio
async def test_static_provider_consumes_lists():
    provider = StaticFieldProvider({"title": ["", "t"], "body": "b"})
    schema = FieldSchema()

    assert await provider.resolve_field("title", schema, True) == ""
    assert await provider.resolve_field("title", schema, True) == "t"
    assert await provider.resolve_field("title", schema, True) is None
    assert await provider.resolve_field("body", schema, False) == "b"
    assert provider.requests == ["title", "title", "title", "body"]


def test_format_summary():
    result = AgentRunResult(
        query="open an issue",
        status=RunStatus.INCOMPLETE,
        iterations=10,
        steps=[
            ThoughtStep(content="try create_issue"),
            ObservationStep(content="403", success=False, error="403 Forbidden"),
        ],
        tool_stats={"create_issue": ToolUsageStat(errors=1, error_messages=["403 Forbidden"])},
    )

    summary = format_summary(result)

    assert "Status: incomplete after 10 iteration(s)" in summary
    assert "create_issue: 0 ok, 1 failed" in summary
    assert "- 403 Forbidden" in summary
    assert "Last thought: try create_issue" in summary
