"""
Pytest configuration and shared fixtures.

This module provides common fixtures for all tests, including:
- Catalog descriptors used across the loop, resolver and supervisor tests
- A scripted model backend
- An in-memory tool channel standing in for the stdio transport
"""

from typing import Any, Dict, List, Optional

import pytest

from relay_agent.base.tool import FieldSchema, InputSchema, ToolDescriptor
from relay_agent.llm import ModelReply


class ScriptedModel:
    """Model backend returning canned replies in order (the last one repeats)."""

    def __init__(self, replies: List[Any]):
        self.replies = [
            r if isinstance(r, ModelReply) else ModelReply(content=r) for r in replies
        ]
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, messages, tools=None) -> ModelReply:
        self.calls.append({"messages": messages, "tools": tools})
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        return self.replies[index]


class FakeTransport:
    """
    In-memory tool channel.

    `responses` holds one entry per call: a result dict, or an exception
    instance to raise. The last entry repeats once the list is exhausted.
    """

    def __init__(
        self,
        responses: Optional[List[Any]] = None,
        tools: Optional[List[ToolDescriptor]] = None,
    ):
        self.responses = responses or [{"content": [{"type": "text", "text": "ok"}]}]
        self.tools = tools or []
        self.calls: List[tuple] = []

    def get_tools(self) -> List[ToolDescriptor]:
        return list(self.tools)

    async def list_tools(self) -> List[ToolDescriptor]:
        return list(self.tools)

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((name, dict(arguments)))
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


def text_result(text: str) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}]}


@pytest.fixture
def echo_tool() -> ToolDescriptor:
    return ToolDescriptor(
        name="echo",
        description="Echoes back your input.",
        category="Local",
        inputSchema=InputSchema(
            properties={"message": FieldSchema(type="string", description="Text to echo")},
            required=("message",),
        ),
    )


@pytest.fixture
def create_issue_tool() -> ToolDescriptor:
    return ToolDescriptor(
        name="create_issue",
        description="Create a new issue.",
        category="Issues",
        inputSchema=InputSchema(
            properties={
                "owner": FieldSchema(description="Repository owner"),
                "repo": FieldSchema(description="Repository name"),
                "title": FieldSchema(description="Title"),
                "body": FieldSchema(description="Body text"),
            },
            required=("owner", "repo", "title"),
        ),
    )


@pytest.fixture
def list_issues_tool() -> ToolDescriptor:
    return ToolDescriptor(
        name="list_issues",
        description="List issues in a repository.",
        category="Issues",
        inputSchema=InputSchema(
            properties={
                "owner": FieldSchema(),
                "repo": FieldSchema(),
                "state": FieldSchema(enum=["open", "closed", "all"]),
                "per_page": FieldSchema(type="number"),
            },
            required=("owner", "repo"),
        ),
    )


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def make_model():
    """Factory: `make_model(["reply 1", "reply 2"])`."""
    return ScriptedModel


@pytest.fixture
def make_transport():
    """Factory: `make_transport([result_or_exception, ...], tools=[...])`."""
    return FakeTransport


@pytest.fixture
def text():
    """Build a `tools/call` text result."""
    return text_result
