"""
Base abstractions for relay-agent.

This module contains the data models and capability protocols that the
reasoning loop, the supervisor and the server build upon.
"""

from .context import AgentContext, ThoughtStep, ActionStep, ObservationStep, ReasoningStep
from .hooks import HookManager, HookEvents
from .providers import FieldProvider, CheckpointProvider
from .tool import (
    FieldSchema,
    InputSchema,
    ToolDescriptor,
    ToolUsageStat,
    ToolResult,
    Tool,
    FunctionTool,
    is_empty_value,
)

__all__ = [
    "AgentContext",
    "ThoughtStep",
    "ActionStep",
    "ObservationStep",
    "ReasoningStep",
    "HookManager",
    "HookEvents",
    "FieldProvider",
    "CheckpointProvider",
    "FieldSchema",
    "InputSchema",
    "ToolDescriptor",
    "ToolUsageStat",
    "ToolResult",
    "Tool",
    "FunctionTool",
    "is_empty_value",
]
